# pyright: standard

"""rustic-backup: rustic_backup/__util__.py
Common utility code shared among modules.
"""

import subprocess


class AbortError(Exception):
    """Base exception for any condition that must stop the current run."""


def exec_subprocess(command, cwd=None, env=None) -> subprocess.CompletedProcess:
    """Run a command to completion, capturing stdout and stderr as text.

    stdin is detached, so a child reading from stdin sees end of file. The
    controlling terminal is kept, so doas can still ask for a password there.
    Output is decoded with replacement so no captured byte is dropped.
    """
    return subprocess.run(
        command,
        cwd=cwd,
        env=env,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
        check=False,
    )


def log_heading(caption: str) -> str:
    """Formatted heading for logging output sections."""
    return f"{f'--[ {caption} ]':-<50}"
