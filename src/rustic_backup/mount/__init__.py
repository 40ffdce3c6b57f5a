"""NFS share resolution and mounting."""

from .executor import (
    MountExecutor,
    MountFailed,
    MountResult,
    MountStatus,
    is_mounted,
    mountpoint_for,
)
from .shares import NfsShare, UnknownShare, known_shares, resolve_share

__all__ = [
    "MountExecutor",
    "MountFailed",
    "MountResult",
    "MountStatus",
    "NfsShare",
    "UnknownShare",
    "is_mounted",
    "known_shares",
    "mountpoint_for",
    "resolve_share",
]
