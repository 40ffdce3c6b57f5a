"""Shared CLI utilities and argument parsers."""

import argparse


def create_global_parser() -> argparse.ArgumentParser:
    """Create a parser with global options that can be used as a parent."""
    parser = argparse.ArgumentParser(add_help=False)
    add_verbosity_args(parser)
    return parser


def add_verbosity_args(parser: argparse.ArgumentParser) -> None:
    """Add verbosity-related arguments to a parser."""
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )


def add_pipeline_args(parser: argparse.ArgumentParser) -> None:
    """Add the stage selection and escalation switches to a parser."""
    group = parser.add_argument_group("Pipeline options")
    group.add_argument(
        "--no-mount",
        action="store_true",
        help="Skip the NFS mount step even if [mount] is configured",
    )
    group.add_argument(
        "--no-check",
        action="store_true",
        help="Skip the repository integrity check",
    )
    group.add_argument(
        "--no-prune",
        action="store_true",
        help="Skip forget and prune; keep every snapshot",
    )
    group.add_argument(
        "--sudo",
        action="store_true",
        help="Run mount and rustic through doas",
    )
    group.add_argument(
        "--print-config",
        action="store_true",
        help="Print the parsed configuration and exit",
    )


def get_log_level(args: argparse.Namespace) -> str:
    """Determine log level from parsed arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR)
    """
    if getattr(args, "debug", False):
        return "DEBUG"
    elif getattr(args, "quiet", False):
        return "WARNING"
    elif getattr(args, "verbose", False):
        return "DEBUG"
    else:
        return "INFO"
