"""Configuration schema definitions using dataclasses.

Defines the structure of backup.toml with the defaults used when a
section or field is omitted.
"""

import getpass
import os
from dataclasses import dataclass, field
from typing import Optional

MIN_COMPRESSION = 1
MAX_COMPRESSION = 22


def default_globs() -> list[str]:
    return ["!**/.git", "!tmp/", "!**/target/", "!**/node_modules/"]


def current_user() -> str:
    """Name of the invoking user: $USER, then $LOGNAME, then the login name."""
    for var in ("USER", "LOGNAME"):
        value = os.environ.get(var)
        if value:
            return value
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "user"


@dataclass(frozen=True)
class RepoConfig:
    """rustic repository settings.

    Attributes:
        path: Local path or backend URI (e.g. "sftp:host:/repo") of the repository
        password: Repository password; "" creates and opens an unencrypted repository
    """

    path: str = "./.backup"
    password: str = ""

    @property
    def has_password(self) -> bool:
        return self.password != ""


@dataclass(frozen=True)
class MountConfig:
    """Optional NFS mount step that runs before everything else.

    Attributes:
        share: Symbolic share name from the built-in share registry
        user: User owning the mount point; None means the invoking user
    """

    share: Optional[str] = None
    user: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.share)

    def effective_user(self) -> str:
        return self.user or current_user()


@dataclass(frozen=True)
class BackupConfig:
    """What to back up and what to exclude.

    Attributes:
        sources: Paths to include in the snapshot, in order
        compression: zstd compression level, 1 (fastest) to 22 (smallest)
        exclude_if_present: Skip directories containing a file with this name
        globs: Glob patterns, evaluated in order; a leading "!" excludes
    """

    sources: list[str] = field(default_factory=lambda: ["."])
    compression: int = 3
    exclude_if_present: str = "ignore"
    globs: list[str] = field(default_factory=default_globs)


@dataclass(frozen=True)
class RetentionConfig:
    """Retention policy configuration.

    Attributes:
        daily: Number of daily snapshots to keep
        weekly: Number of weekly snapshots to keep
        monthly: Number of monthly snapshots to keep
    """

    daily: int = 2
    weekly: int = 1
    monthly: int = 1


@dataclass(frozen=True)
class Config:
    """Root configuration object.

    Attributes:
        repo: Repository location and password
        mount: NFS share to mount before the backup
        backup: Sources, compression and exclusion rules
        retention: Snapshot retention policy for forget
    """

    repo: RepoConfig = field(default_factory=RepoConfig)
    mount: MountConfig = field(default_factory=MountConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)

    def validate(self) -> None:
        """Check value invariants.

        Raises:
            ConfigInvalid: On the first out-of-range or mistyped value
        """
        from .loader import ConfigInvalid

        if not isinstance(self.repo.path, str) or not self.repo.path:
            raise ConfigInvalid("repo.path must be a non-empty string")
        if not isinstance(self.repo.password, str):
            raise ConfigInvalid("repo.password must be a string")

        compression = self.backup.compression
        if not _is_int(compression) or not (
            MIN_COMPRESSION <= compression <= MAX_COMPRESSION
        ):
            raise ConfigInvalid(
                f"backup.compression must be an integer between "
                f"{MIN_COMPRESSION} and {MAX_COMPRESSION}, got {compression!r}"
            )
        if not self.backup.sources:
            raise ConfigInvalid("backup.sources must list at least one path")
        _require_strings("backup.sources", self.backup.sources)
        _require_strings("backup.globs", self.backup.globs)
        if not isinstance(self.backup.exclude_if_present, str):
            raise ConfigInvalid("backup.exclude_if_present must be a string")

        for name in ("daily", "weekly", "monthly"):
            value = getattr(self.retention, name)
            if not _is_int(value) or value < 0:
                raise ConfigInvalid(
                    f"retention.{name} must be a non-negative integer, got {value!r}"
                )

        if self.mount.share is not None and not isinstance(self.mount.share, str):
            raise ConfigInvalid("mount.share must be a string")
        if self.mount.user is not None and not isinstance(self.mount.user, str):
            raise ConfigInvalid("mount.user must be a string")

        strings = [
            ("repo.path", self.repo.path),
            ("repo.password", self.repo.password),
            ("backup.exclude_if_present", self.backup.exclude_if_present),
            ("mount.share", self.mount.share or ""),
            ("mount.user", self.mount.user or ""),
        ]
        strings += [("backup.sources", s) for s in self.backup.sources]
        strings += [("backup.globs", g) for g in self.backup.globs]
        for name, value in strings:
            # exec arguments and filesystem paths cannot carry NUL
            if "\x00" in value:
                raise ConfigInvalid(f"{name} must not contain a NUL character")


def _is_int(value) -> bool:
    # bool is a subclass of int but "compression = true" is not a level
    return isinstance(value, int) and not isinstance(value, bool)


def _require_strings(name: str, values) -> None:
    from .loader import ConfigInvalid

    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise ConfigInvalid(f"{name} must be a list of strings")
