"""TOML configuration loading and validation.

Handles config file discovery, parsing, and validation with helpful error messages.
"""

import tomllib
from pathlib import Path
from typing import Any

from ..__util__ import AbortError
from .schema import (
    BackupConfig,
    Config,
    MountConfig,
    RepoConfig,
    RetentionConfig,
    current_user,
    default_globs,
)


class ConfigError(AbortError):
    """Configuration loading or validation error."""

    pass


class ConfigInvalid(ConfigError):
    """A configuration value is malformed or out of range."""

    pass


DEFAULT_CONFIG_NAME = "backup.toml"

# Config file search paths in priority order
CONFIG_PATHS = [
    Path(DEFAULT_CONFIG_NAME),
    Path.home() / ".config" / "rustic-backup" / "config.toml",
]


def find_config_file(explicit_path: str | None = None) -> Path | None:
    """Find configuration file.

    Args:
        explicit_path: Explicitly specified config path (highest priority)

    Returns:
        Path to config file, or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit_path}")

    for path in CONFIG_PATHS:
        if path.exists():
            return path

    return None


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Return a top-level table, rejecting scalars written in its place."""
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table")
    return section


def _parse_repo(data: dict[str, Any]) -> RepoConfig:
    """Parse repository configuration from dict."""
    return RepoConfig(
        path=data.get("path", "./.backup"),
        password=data.get("password", ""),
    )


def _parse_mount(data: dict[str, Any]) -> MountConfig:
    """Parse mount configuration from dict."""
    return MountConfig(
        share=data.get("share") or None,
        user=data.get("user") or None,
    )


def _parse_backup(data: dict[str, Any]) -> BackupConfig:
    """Parse backup configuration from dict."""
    # An omitted or empty source list backs up the working directory
    sources = data.get("sources") or ["."]

    return BackupConfig(
        sources=sources,
        compression=data.get("compression", 3),
        exclude_if_present=data.get("exclude_if_present", "ignore"),
        globs=data.get("globs", default_globs()),
    )


def _parse_retention(data: dict[str, Any]) -> RetentionConfig:
    """Parse retention configuration from dict.

    Both "daily" and "keep_daily" spellings are accepted.
    """

    def pick(name: str, default: int):
        if name in data:
            return data[name]
        return data.get(f"keep_{name}", default)

    return RetentionConfig(
        daily=pick("daily", 2),
        weekly=pick("weekly", 1),
        monthly=pick("monthly", 1),
    )


def _collect_warnings(config: Config, data: dict[str, Any]) -> list[str]:
    """Collect non-fatal configuration warnings."""
    warnings = []

    mount_data = data.get("mount", {})
    if mount_data and not config.mount.enabled:
        warnings.append("[mount] section has no 'share'; mount step will be skipped")

    repo_path = Path(config.repo.path)
    # Remote backends ("sftp:host:/path", "s3://...") carry a scheme prefix
    if ":" not in config.repo.path.split("/")[0]:
        for source in config.backup.sources:
            try:
                repo_path.resolve().relative_to(Path(source).resolve())
            except ValueError:
                continue
            warnings.append(
                f"Repository '{config.repo.path}' lies inside source '{source}'; "
                "add an exclusion glob for it"
            )

    if len(config.backup.sources) != len(set(config.backup.sources)):
        warnings.append("Duplicate backup sources detected")

    return warnings


def parse_config(data: dict[str, Any]) -> tuple[Config, list[str]]:
    """Build and validate a Config from already-parsed TOML data.

    Raises:
        ConfigError: If a section has the wrong shape
        ConfigInvalid: If a value is out of range
    """
    config = Config(
        repo=_parse_repo(_section(data, "repo")),
        mount=_parse_mount(_section(data, "mount")),
        backup=_parse_backup(_section(data, "backup")),
        retention=_parse_retention(_section(data, "retention")),
    )
    config.validate()

    return config, _collect_warnings(config, data)


def load_config(path: Path | str) -> tuple[Config, list[str]]:
    """Load and validate configuration from TOML file.

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (Config object, list of warnings)

    Raises:
        ConfigError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax in {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    return parse_config(data)


def _toml_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def generate_example_config(user: str | None = None, cwd: Path | None = None) -> str:
    """Generate starter configuration file content.

    Args:
        user: Owner of the NFS mount point (defaults to the invoking user)
        cwd: Directory to back up (defaults to the current directory)
    """
    user = user or current_user()
    cwd = (cwd or Path.cwd()).resolve()
    name = cwd.name or "root"
    repo_path = f"/home/{user}/nfs/new-backups/rustic/{name}"
    globs = ",\n    ".join(_toml_string(g) for g in default_globs())

    return f"""# rustic-backup configuration
# Generated by 'rustic-backup init'

[repo]
path = {_toml_string(repo_path)}
password = ""        # empty = no encryption

[mount]
share = "new-backups"
user = {_toml_string(user)}

[backup]
sources = [{_toml_string(str(cwd))}]
compression = 3      # zstd level 1-22
exclude_if_present = "ignore"
globs = [
    {globs},
]

[retention]
daily = 2
weekly = 1
monthly = 1
"""
