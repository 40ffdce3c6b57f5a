"""Stage execution: run one external command and capture everything it says.

The runner never retries and never decides to skip; it executes, waits,
and hands back a StageResult. Classification of a non-zero exit as a
failure is available through run_checked().
"""

import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional, Sequence

from .. import __util__

logger = logging.getLogger(__name__)

# Exit status reported when the command could not be spawned at all,
# matching what a shell reports for "command not found"
SPAWN_FAILURE_STATUS = 127


class Stage(Enum):
    """Pipeline stages, in execution order."""

    MOUNT = "Mount"
    INIT = "Init"
    CHECK = "Check"
    BACKUP = "Backup"
    FORGET = "Forget"
    COMPACT = "Compact"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class StageResult:
    """Outcome of one external command run for a stage."""

    stage: Stage
    command: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout followed by stderr, both complete."""
        if self.stdout and self.stderr:
            sep = "" if self.stdout.endswith("\n") else "\n"
            return f"{self.stdout}{sep}{self.stderr}"
        return self.stdout or self.stderr


class StageFailed(__util__.AbortError):
    """An external command for a stage exited non-zero."""

    def __init__(self, result: StageResult, message: str | None = None) -> None:
        self.result = result
        super().__init__(
            message
            or f"{result.stage} failed with exit status {result.returncode}"
        )


Executor = Callable[..., object]


class StageRunner:
    """Run external commands for pipeline stages.

    Args:
        execute: Process facility called as execute(command, cwd=..., env=...)
            and returning an object with returncode, stdout and stderr
        cwd: Working directory for every child process
        env: Environment for every child process (defaults to a copy of ours)
        redact: Turns a command into its loggable form
    """

    def __init__(
        self,
        execute: Optional[Executor] = None,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        redact: Optional[Callable[[Sequence[str]], list[str]]] = None,
    ) -> None:
        self.execute = execute or __util__.exec_subprocess
        self.cwd = cwd
        self.env = dict(env) if env is not None else os.environ.copy()
        self.redact = redact or list

    def run(self, stage: Stage, command: Sequence[str]) -> StageResult:
        """Execute command to completion and return its captured result."""
        if not command:
            raise ValueError("cannot run an empty command")

        command = tuple(command)
        logger.debug("%s: %s", stage, " ".join(self.redact(command)))

        start = time.monotonic()
        try:
            proc = self.execute(list(command), cwd=self.cwd, env=self.env)
        except OSError as e:
            duration = time.monotonic() - start
            logger.debug("%s: could not spawn %s: %s", stage, command[0], e)
            return StageResult(
                stage=stage,
                command=command,
                returncode=SPAWN_FAILURE_STATUS,
                stderr=f"failed to spawn {command[0]}: {e}",
                duration_seconds=duration,
            )
        duration = time.monotonic() - start

        result = StageResult(
            stage=stage,
            command=command,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            duration_seconds=duration,
        )
        logger.debug(
            "%s: exit status %d after %.2fs", stage, result.returncode, duration
        )
        return result

    def run_checked(self, stage: Stage, command: Sequence[str]) -> StageResult:
        """Like run(), but raise StageFailed on a non-zero exit status."""
        result = self.run(stage, command)
        if not result.succeeded:
            raise StageFailed(result)
        return result
