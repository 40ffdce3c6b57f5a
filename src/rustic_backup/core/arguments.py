"""Compile configuration into rustic argument lists.

Every function here is pure: the same Config always yields the same
list. Nothing is executed; StageRunner does that.
"""

from typing import Sequence

from ..config import Config
from .runner import Stage

ENGINE = "rustic"
ESCALATION_PREFIX = ("doas",)
PASSWORD_FLAG = "--password"
REDACTED = "********"


def escalation_prefix(sudo: bool) -> list[str]:
    """Returns ["doas"] when escalation is requested, otherwise []."""
    return list(ESCALATION_PREFIX) if sudo else []


def base_args(config: Config) -> list[str]:
    """Repository selection shared by every rustic invocation.

    The password flag is omitted entirely for an unencrypted repository.
    """
    args = ["-r", config.repo.path]
    if config.repo.has_password:
        args.extend([PASSWORD_FLAG, config.repo.password])
    return args


def init_args(config: Config) -> list[str]:
    return base_args(config) + ["init"]


def check_args(config: Config) -> list[str]:
    return base_args(config) + ["check"]


def backup_args(config: Config) -> list[str]:
    """Arguments for 'rustic backup'.

    Globs keep their configured order since rustic applies them in
    sequence and the last match wins.
    """
    backup = config.backup
    args = base_args(config) + [
        "backup",
        "--set-compression",
        str(backup.compression),
    ]
    if backup.exclude_if_present:
        args.extend(["--exclude-if-present", backup.exclude_if_present])
    args.extend(f"--glob={glob}" for glob in backup.globs)
    args.extend(backup.sources)
    return args


def forget_args(config: Config) -> list[str]:
    retention = config.retention
    return base_args(config) + [
        "forget",
        "--prune",
        "--keep-daily",
        str(retention.daily),
        "--keep-weekly",
        str(retention.weekly),
        "--keep-monthly",
        str(retention.monthly),
    ]


def compact_args(config: Config) -> list[str]:
    return base_args(config) + ["prune"]


_BUILDERS = {
    Stage.INIT: init_args,
    Stage.CHECK: check_args,
    Stage.BACKUP: backup_args,
    Stage.FORGET: forget_args,
    Stage.COMPACT: compact_args,
}


def build_args(config: Config, stage: Stage) -> list[str]:
    """Engine arguments for stage, without the binary or escalation prefix.

    Raises:
        ValueError: For stages that do not run the backup engine
    """
    try:
        builder = _BUILDERS[stage]
    except KeyError:
        raise ValueError(f"{stage} does not run {ENGINE}") from None
    return builder(config)


def build_command(config: Config, stage: Stage, sudo: bool = False) -> list[str]:
    """Full command line: [doas] rustic <args>."""
    return escalation_prefix(sudo) + [ENGINE] + build_args(config, stage)


def redact(command: Sequence[str]) -> list[str]:
    """Copy of command with the password value masked, for display."""
    redacted = list(command)
    for i, arg in enumerate(redacted[:-1]):
        if arg == PASSWORD_FLAG:
            redacted[i + 1] = REDACTED
    return redacted
