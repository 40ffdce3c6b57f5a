"""Configuration system for rustic-backup.

This module provides TOML-based configuration loading, validation,
and schema definitions for the backup pipeline.
"""

from .loader import (
    ConfigError,
    ConfigInvalid,
    find_config_file,
    generate_example_config,
    load_config,
    parse_config,
)
from .schema import (
    BackupConfig,
    Config,
    MountConfig,
    RepoConfig,
    RetentionConfig,
)

__all__ = [
    "BackupConfig",
    "Config",
    "MountConfig",
    "RepoConfig",
    "RetentionConfig",
    "load_config",
    "parse_config",
    "find_config_file",
    "generate_example_config",
    "ConfigError",
    "ConfigInvalid",
]
