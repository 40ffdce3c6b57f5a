"""CLI dispatcher.

Running without a subcommand executes the backup pipeline; the only
explicit subcommand is 'init'.
"""

import argparse
import sys
from typing import Callable

from .. import PROG_NAME
from .common import add_pipeline_args, create_global_parser


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        parents=[create_global_parser()],
        prog=PROG_NAME,
        description="A rustic backup wrapper driven by backup.toml",
        epilog=(
            "stages: Mount -> Init -> Check -> Backup -> Forget -> Compact; "
            "the first failing stage aborts the run"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    add_pipeline_args(parser)

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Path to configuration file (default: ./backup.toml)",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Omit the command to run the full backup pipeline",
    )

    subparsers.add_parser(
        "init",
        help="Scaffold a backup.toml in the current directory",
        description=(
            "Write a starter config with the current directory as source, "
            "refusing to overwrite an existing file"
        ),
    )

    return parser


def cmd_run(args: argparse.Namespace) -> int:
    """Execute the default pipeline."""
    from .run import execute_run

    return execute_run(args)


def cmd_init(args: argparse.Namespace) -> int:
    """Execute init command."""
    from .init_cmd import execute_init

    return execute_init(args)


def run_subcommand(args: argparse.Namespace) -> int:
    """Run the specified subcommand, or the pipeline when there is none.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    from .. import __version__

    if args.version:
        print(f"{PROG_NAME} {__version__}")
        return 0

    handlers: dict[str, Callable] = {
        "init": cmd_init,
    }

    handler = handlers.get(args.command, cmd_run)
    return handler(args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the rustic-backup CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_parser()
    args = parser.parse_args(argv)

    return run_subcommand(args)
