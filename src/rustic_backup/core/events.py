"""Stage lifecycle events handed from the orchestrator to presentation."""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Protocol

from .runner import Stage

if TYPE_CHECKING:
    from .pipeline import StageRecord


class StagePhase(Enum):
    STARTED = "started"
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class StageEvent:
    """A stage entered a new phase; record is set for every terminal phase."""

    stage: Stage
    phase: StagePhase
    record: Optional["StageRecord"] = None


class EventSink(Protocol):
    def emit(self, event: StageEvent) -> None: ...


class NullSink:
    """Discards every event."""

    def emit(self, event: StageEvent) -> None:
        pass


class RecordingSink:
    """Keeps every event in order; handy for tests and post-run inspection."""

    def __init__(self) -> None:
        self.events: list[StageEvent] = []

    def emit(self, event: StageEvent) -> None:
        self.events.append(event)

    def phases(self) -> list[tuple[Stage, StagePhase]]:
        return [(e.stage, e.phase) for e in self.events]
