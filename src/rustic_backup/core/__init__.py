"""Core pipeline logic for rustic-backup.

- runner: run one external command and capture its output
- arguments: compile configuration into rustic argument lists
- events: stage lifecycle events for presentation
- pipeline: the stage table and the fail-fast orchestrator
"""
