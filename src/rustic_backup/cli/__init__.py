"""Command line interface for rustic-backup."""

from .dispatcher import main

__all__ = ["main"]
