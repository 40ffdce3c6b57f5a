# pyright: standard

"""rustic-backup: rustic_backup/mount/executor.py
Mount NFS shares at a per-user mount point, idempotently.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

from ..__util__ import AbortError
from ..core.runner import Stage, StageResult, StageRunner
from .shares import NfsShare

logger = logging.getLogger(__name__)

PROC_MOUNTS = Path("/proc/mounts")


class MountStatus(Enum):
    MOUNTED = "mounted"
    ALREADY_MOUNTED = "already mounted"


@dataclass(frozen=True)
class MountResult:
    """What a mount attempt did."""

    status: MountStatus
    share: NfsShare
    mountpoint: Path
    result: Optional[StageResult] = None


class MountFailed(AbortError):
    """Creating the mount point or running mount failed."""

    def __init__(self, message: str, result: Optional[StageResult] = None) -> None:
        self.result = result
        super().__init__(message)


def mountpoint_for(share: NfsShare | str, user: str) -> Path:
    """Mount point for a share: /home/<user>/nfs/<share>."""
    name = share.name if isinstance(share, NfsShare) else share
    return Path("/home") / user / "nfs" / name


def _unescape_mount_field(value: str) -> str:
    # /proc/mounts encodes space, tab, newline and backslash as octal escapes
    for escape, char in (("\\040", " "), ("\\011", "\t"), ("\\012", "\n")):
        value = value.replace(escape, char)
    return value.replace("\\134", "\\")


def is_mounted(mountpoint: Path | str) -> bool:
    """Return True if mountpoint is an active mount.

    Reads /proc/mounts; falls back to os.path.ismount where it is absent.
    """
    target = os.path.normpath(str(mountpoint))
    try:
        lines = PROC_MOUNTS.read_text().splitlines()
    except OSError:
        return os.path.ismount(target)

    for line in lines:
        fields = line.split()
        if len(fields) >= 2 and _unescape_mount_field(fields[1]) == target:
            return True
    return False


class MountExecutor:
    """Mount a resolved share unless it is already mounted.

    Args:
        runner: StageRunner used to run the mount command
        prefix: Privilege escalation prefix for mount, e.g. ["doas"]
        inspect: Mount state inspection, mountpoint -> bool
    """

    def __init__(
        self,
        runner: StageRunner,
        prefix: Sequence[str] = (),
        inspect: Callable[[Path], bool] = is_mounted,
    ) -> None:
        self.runner = runner
        self.prefix = list(prefix)
        self.inspect = inspect

    def build_command(self, share: NfsShare, mountpoint: Path) -> list[str]:
        return [*self.prefix, "mount", "-t", "nfs", share.source, str(mountpoint)]

    def mount(self, share: NfsShare, user: str) -> MountResult:
        """Mount share at the user's mount point.

        Returns:
            MountResult with status ALREADY_MOUNTED (nothing was run) or MOUNTED

        Raises:
            MountFailed: If the mount point cannot be created or mount fails
        """
        mountpoint = mountpoint_for(share, user)

        if self.inspect(mountpoint):
            logger.info("%s already mounted at %s", share.name, mountpoint)
            return MountResult(MountStatus.ALREADY_MOUNTED, share, mountpoint)

        try:
            mountpoint.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MountFailed(f"cannot create mount point {mountpoint}: {e}")

        command = self.build_command(share, mountpoint)
        result = self.runner.run(Stage.MOUNT, command)
        if not result.succeeded:
            raise MountFailed(
                f"{' '.join(command)} exited with status {result.returncode}",
                result,
            )

        logger.info("Mounted %s -> %s", share.source, mountpoint)
        return MountResult(MountStatus.MOUNTED, share, mountpoint, result)
