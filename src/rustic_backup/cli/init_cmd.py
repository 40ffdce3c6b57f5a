"""Init command: scaffold a starter configuration file."""

import argparse
import logging
from pathlib import Path

from ..__logger__ import create_logger
from ..config.loader import DEFAULT_CONFIG_NAME, generate_example_config
from .common import get_log_level

logger = logging.getLogger(__name__)


def execute_init(args: argparse.Namespace) -> int:
    """Write a starter config for the current directory.

    Refuses to overwrite an existing file.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    create_logger(get_log_level(args))

    output = Path(getattr(args, "config", None) or DEFAULT_CONFIG_NAME)
    content = generate_example_config(cwd=Path.cwd())
    try:
        with open(output, "x") as f:
            f.write(content)
    except FileExistsError:
        logger.error("%s already exists; refusing to overwrite it", output)
        return 1
    except OSError as e:
        logger.error("Error writing file: %s", e)
        return 1

    print(f"Starter configuration written to: {output}")
    print("Review the repository path and password before the first run.")
    return 0
