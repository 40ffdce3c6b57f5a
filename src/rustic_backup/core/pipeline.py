"""The backup pipeline: a fixed stage table driven by a fail-fast loop.

| Stage   | Skipped when                                  |
|---------|-----------------------------------------------|
| Mount   | no share configured, --no-mount, already mounted |
| Init    | never (an existing repository counts as success) |
| Check   | --no-check                                    |
| Backup  | never                                         |
| Forget  | --no-prune                                    |
| Compact | --no-prune                                    |

The first failing stage ends the run; nothing after it is entered.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from ..config import Config
from ..mount import (
    MountExecutor,
    MountFailed,
    MountStatus,
    NfsShare,
    is_mounted,
    resolve_share,
)
from .arguments import build_command, escalation_prefix, redact
from .events import EventSink, NullSink, StageEvent, StagePhase
from .runner import Stage, StageFailed, StageResult, StageRunner

logger = logging.getLogger(__name__)

# How rustic (and restic) report an init against an existing repository
_ALREADY_INITIALIZED = re.compile(r"already\s+(exist|initiali[sz]ed)", re.IGNORECASE)


class StageState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RunOptions:
    """Command line switches that affect stage selection and escalation."""

    no_mount: bool = False
    no_check: bool = False
    no_prune: bool = False
    sudo: bool = False


@dataclass(frozen=True)
class StageRecord:
    """Final state of one stage in a run."""

    stage: Stage
    state: StageState
    result: Optional[StageResult] = None
    note: str = ""

    @property
    def failed(self) -> bool:
        return self.state is StageState.FAILED


@dataclass
class PipelineRun:
    """Ordered stage records for one invocation."""

    records: list[StageRecord] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    completed_at: float = 0.0

    @property
    def failed_record(self) -> Optional[StageRecord]:
        return next((r for r in self.records if r.failed), None)

    @property
    def succeeded(self) -> bool:
        return self.completed_at > 0 and self.failed_record is None

    @property
    def aborted_at(self) -> Optional[Stage]:
        record = self.failed_record
        return record.stage if record else None

    @property
    def duration(self) -> float:
        end = self.completed_at or time.time()
        return end - self.started_at

    def states(self) -> dict[Stage, StageState]:
        return {r.stage: r.state for r in self.records}

    def not_run(self) -> list[Stage]:
        """Stages that were never entered because the run aborted."""
        entered = {r.stage for r in self.records}
        return [s for s in Stage if s not in entered]


SkipPredicate = Callable[[RunOptions, Config], Optional[str]]


def _never(options: RunOptions, config: Config) -> Optional[str]:
    return None


def _skip_mount(options: RunOptions, config: Config) -> Optional[str]:
    if not config.mount.enabled:
        return "no share configured"
    if options.no_mount:
        return "--no-mount"
    return None


def _skip_check(options: RunOptions, config: Config) -> Optional[str]:
    return "--no-check" if options.no_check else None


def _skip_prune(options: RunOptions, config: Config) -> Optional[str]:
    return "--no-prune" if options.no_prune else None


def _exit_ok(result: StageResult) -> bool:
    return result.succeeded


def _init_ok(result: StageResult) -> bool:
    return result.succeeded or bool(_ALREADY_INITIALIZED.search(result.output))


@dataclass(frozen=True)
class StageSpec:
    stage: Stage
    skip: SkipPredicate
    accept: Callable[[StageResult], bool] = _exit_ok


STAGES: tuple[StageSpec, ...] = (
    StageSpec(Stage.MOUNT, _skip_mount),
    StageSpec(Stage.INIT, _never, _init_ok),
    StageSpec(Stage.CHECK, _skip_check),
    StageSpec(Stage.BACKUP, _never),
    StageSpec(Stage.FORGET, _skip_prune),
    StageSpec(Stage.COMPACT, _skip_prune),
)


class PipelineOrchestrator:
    """Run the stage table for one configuration.

    Args:
        config: Loaded configuration
        options: Skip and escalation switches
        runner: StageRunner for every external command
        sink: Receives stage lifecycle events
        inspect: Mount state inspection, mountpoint -> bool
    """

    def __init__(
        self,
        config: Config,
        options: Optional[RunOptions] = None,
        runner: Optional[StageRunner] = None,
        sink: Optional[EventSink] = None,
        inspect: Callable = is_mounted,
    ) -> None:
        self.config = config
        self.options = options or RunOptions()
        self.runner = runner or StageRunner(redact=redact)
        self.sink = sink or NullSink()
        self.mounter = MountExecutor(
            self.runner,
            prefix=escalation_prefix(self.options.sudo),
            inspect=inspect,
        )

    def preflight(self) -> Optional[NfsShare]:
        """Validate everything that can be checked without a subprocess.

        Raises:
            ConfigInvalid: On an invalid configuration value
            UnknownShare: If the configured share is not registered
        """
        self.config.validate()
        if self.config.mount.enabled:
            return resolve_share(self.config.mount.share)
        return None

    def run(self) -> PipelineRun:
        """Run every stage in order, stopping at the first failure.

        Pre-flight errors propagate before anything is executed; stage
        failures are recorded in the returned PipelineRun.
        """
        share = self.preflight()
        pipeline_run = PipelineRun()

        for spec in STAGES:
            record = self._run_stage(spec, share)
            pipeline_run.records.append(record)
            if record.failed:
                logger.error("Pipeline aborted at %s", spec.stage)
                break

        pipeline_run.completed_at = time.time()
        return pipeline_run

    def _run_stage(self, spec: StageSpec, share: Optional[NfsShare]) -> StageRecord:
        reason = spec.skip(self.options, self.config)
        if reason:
            return self._finish(
                StageRecord(spec.stage, StageState.SKIPPED, note=reason)
            )

        logger.debug("%s: %s", spec.stage, StageState.RUNNING.value)
        self._emit(StageEvent(spec.stage, StagePhase.STARTED))

        try:
            if spec.stage is Stage.MOUNT:
                record = self._mount(share)
            else:
                record = self._run_engine(spec)
        except (StageFailed, MountFailed) as e:
            record = StageRecord(spec.stage, StageState.FAILED, e.result, str(e))

        return self._finish(record)

    def _mount(self, share: Optional[NfsShare]) -> StageRecord:
        if share is None:
            raise MountFailed("no share was resolved for the mount stage")
        user = self.config.mount.effective_user()
        outcome = self.mounter.mount(share, user)
        if outcome.status is MountStatus.ALREADY_MOUNTED:
            return StageRecord(
                Stage.MOUNT,
                StageState.SKIPPED,
                note=f"already mounted at {outcome.mountpoint}",
            )
        return StageRecord(
            Stage.MOUNT,
            StageState.SUCCEEDED,
            outcome.result,
            note=f"{share.source} -> {outcome.mountpoint}",
        )

    def _run_engine(self, spec: StageSpec) -> StageRecord:
        command = build_command(self.config, spec.stage, sudo=self.options.sudo)
        result = self.runner.run(spec.stage, command)

        if not spec.accept(result):
            raise StageFailed(result)

        note = ""
        if not result.succeeded:
            note = "repository already initialized"
            logger.info("%s: %s", spec.stage, note)
        return StageRecord(spec.stage, StageState.SUCCEEDED, result, note)

    def _finish(self, record: StageRecord) -> StageRecord:
        phase = {
            StageState.SUCCEEDED: StagePhase.SUCCEEDED,
            StageState.SKIPPED: StagePhase.SKIPPED,
            StageState.FAILED: StagePhase.FAILED,
        }[record.state]

        if record.failed:
            logger.error("%s failed: %s", record.stage, record.note)
        else:
            logger.debug("%s: %s %s", record.stage, record.state.value, record.note)

        self._emit(StageEvent(record.stage, phase, record))
        return record

    def _emit(self, event: StageEvent) -> None:
        try:
            self.sink.emit(event)
        except Exception as e:
            # Presentation problems never change the outcome of a stage
            logger.warning(
                "Event sink failed on %s %s: %s", event.stage, event.phase.value, e
            )
