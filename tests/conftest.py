"""Pytest configuration and shared fixtures."""

import subprocess
from pathlib import Path

import pytest

from rustic_backup.config import (
    BackupConfig,
    Config,
    MountConfig,
    RepoConfig,
    RetentionConfig,
)
from rustic_backup.mount import executor as mount_executor


class FakeExecutor:
    """Stand-in for the process facility that records every command.

    Outcomes are looked up by the first argument after the engine binary
    ("init", "check", "backup", ...) or by program name ("mount").
    """

    def __init__(self, outcomes=None):
        self.calls: list[list[str]] = []
        self.outcomes = outcomes or {}

    def _key(self, command):
        args = [a for a in command if a != "doas"]
        if args and args[0] == "rustic":
            for arg in args[1:]:
                if arg in {"init", "check", "backup", "forget", "prune"}:
                    return arg
        return args[0] if args else ""

    def __call__(self, command, cwd=None, env=None):
        self.calls.append(list(command))
        returncode, stdout, stderr = self.outcomes.get(self._key(command), (0, "", ""))
        return subprocess.CompletedProcess(command, returncode, stdout, stderr)

    def subcommands(self) -> list[str]:
        return [self._key(c) for c in self.calls]


@pytest.fixture
def fake_executor():
    """A FakeExecutor where every command succeeds."""
    return FakeExecutor()


@pytest.fixture
def make_config():
    """Factory building a Config with a few overridable values."""

    def _make(
        password="pw",
        share="new-backups",
        compression=3,
        sources=("/home/alice/project",),
        globs=("!**/.git", "!tmp/", "!**/target/", "!**/node_modules/"),
        user="alice",
    ):
        return Config(
            repo=RepoConfig(path="/tmp/repo", password=password),
            mount=MountConfig(share=share, user=user),
            backup=BackupConfig(
                sources=list(sources),
                compression=compression,
                exclude_if_present="ignore",
                globs=list(globs),
            ),
            retention=RetentionConfig(daily=2, weekly=1, monthly=1),
        )

    return _make


@pytest.fixture
def mount_root(tmp_path, monkeypatch):
    """Redirect mount points from /home/<user>/nfs into tmp_path."""
    root = tmp_path / "home"

    def _mountpoint_for(share, user):
        name = share.name if hasattr(share, "name") else share
        return root / user / "nfs" / name

    monkeypatch.setattr(mount_executor, "mountpoint_for", _mountpoint_for)
    return root


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_toml():
    """Return a sample valid TOML configuration string."""
    return """
[repo]
path = "/home/alice/nfs/new-backups/rustic/project"
password = "hunter2"

[mount]
share = "new-backups"
user = "alice"

[backup]
sources = ["/home/alice/project", "/home/alice/notes"]
compression = 6
exclude_if_present = ".nobackup"
globs = ["!**/.git", "!**/target/", "pattern"]

[retention]
daily = 7
weekly = 4
monthly = 3
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid TOML configuration string."""
    return """
[repo]
path = "/tmp/repo"
"""


@pytest.fixture
def config_file(tmp_config_dir, sample_config_toml) -> Path:
    """Create a temporary config file with sample content."""
    config_path = tmp_config_dir / "backup.toml"
    config_path.write_text(sample_config_toml)
    return config_path


@pytest.fixture
def minimal_config_file(tmp_config_dir, minimal_config_toml) -> Path:
    """Create a temporary config file with minimal content."""
    config_path = tmp_config_dir / "minimal.toml"
    config_path.write_text(minimal_config_toml)
    return config_path


@pytest.fixture
def make_executor():
    """Factory for FakeExecutor instances with per-subcommand outcomes."""
    return FakeExecutor
