"""rustic-backup: rustic_backup/__init__.py."""

__version__ = "0.3.0"

PROG_NAME = "rustic-backup"
