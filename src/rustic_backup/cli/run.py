"""Run command: execute the full backup pipeline."""

import argparse
import dataclasses
import logging
import tempfile
import time
from pathlib import Path

from filelock import FileLock, Timeout
from rich.console import Console
from rich.pretty import Pretty

from .. import __logger__, __util__
from ..__logger__ import create_logger
from ..config import Config, ConfigError, find_config_file, load_config
from ..config.schema import current_user
from ..core.arguments import REDACTED
from ..core.pipeline import PipelineOrchestrator, RunOptions
from ..mount import UnknownShare
from .common import get_log_level
from .progress import RichStageReporter, print_summary

logger = logging.getLogger(__name__)


def run_lock_path() -> Path:
    """Per-user lock file held for the duration of a pipeline run."""
    return Path(tempfile.gettempdir()) / f".rustic-backup.{current_user()}.lock"


def _load(args: argparse.Namespace) -> Config:
    """Find and load the configuration, falling back to defaults."""
    config_path = find_config_file(getattr(args, "config", None))
    if config_path is None:
        logger.warning(
            "No configuration file found, using defaults. "
            "Run 'rustic-backup init' to generate a starter config."
        )
        return Config()

    logger.info("Loading configuration from: %s", config_path)
    config, warnings = load_config(config_path)
    for warning in warnings:
        logger.warning("Config: %s", warning)
    return config


def _print_config(config: Config, console: Console) -> int:
    """Show the parsed configuration with the password masked."""
    if config.repo.has_password:
        repo = dataclasses.replace(config.repo, password=REDACTED)
        config = dataclasses.replace(config, repo=repo)
    console.print(Pretty(config))
    return 0


def run_options(args: argparse.Namespace) -> RunOptions:
    return RunOptions(
        no_mount=getattr(args, "no_mount", False),
        no_check=getattr(args, "no_check", False),
        no_prune=getattr(args, "no_prune", False),
        sudo=getattr(args, "sudo", False),
    )


def execute_run(args: argparse.Namespace) -> int:
    """Execute the run command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    create_logger(get_log_level(args))
    console = Console()
    # Shared with logging so log lines print above the spinner
    progress_console = __logger__.cons

    try:
        config = _load(args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    if getattr(args, "print_config", False):
        return _print_config(config, console)

    reporter = RichStageReporter(progress_console, progress_console)
    orchestrator = PipelineOrchestrator(config, run_options(args), sink=reporter)

    lock = FileLock(run_lock_path(), timeout=0)
    try:
        with lock:
            logger.debug(__util__.log_heading(f"Started at {time.ctime()}"))
            try:
                pipeline_run = orchestrator.run()
            finally:
                reporter.close()
    except Timeout:
        logger.error("Another backup run holds %s; not starting", lock.lock_file)
        return 1
    except UnknownShare as e:
        logger.error("Mount error: %s", e)
        return 1
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    print_summary(pipeline_run, console, progress_console)
    return 0 if pipeline_run.succeeded else 1
