"""Engine fallback sequencing.

Tries each configured engine in declared order. Only an environment
defect (missing Xvfb, missing shared library) moves on to the next
engine; any other outcome ends the sequence, since a failing test or a
broken invocation is not engine specific.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

from .attempt import AttemptRecord, AttemptRunner, engine_label
from .timeline import TimelineLogger


logger = logging.getLogger(__name__)

LOG_HEADER = "Starting Cypress headless execution attempts...\n"


class SequencerState(str, Enum):
    NOT_STARTED = "not_started"
    ATTEMPTING = "attempting"
    DONE = "done"


@dataclass
class SequenceResult:
    """All attempts of one request plus their merged transcript."""
    records: List[AttemptRecord] = field(default_factory=list)
    cumulative_log: str = ""

    @property
    def terminal(self) -> AttemptRecord:
        """The attempt that ended the sequence."""
        return self.records[-1]

    @property
    def engines_tried(self) -> List[str]:
        return [r.engine for r in self.records]


def attempt_marker(engine: str, previous: Optional[AttemptRecord] = None) -> str:
    """Transcript line introducing an attempt."""
    label = engine_label(engine)
    if previous is None:
        return f"\n--- Attempting with {label} headless ---\n"
    return (
        f"\n--- {engine_label(previous.engine)} headless attempt hit an environment "
        f"defect ({previous.outcome.defect_kind}). Attempting with {label} headless ---\n"
    )


class FallbackSequencer:
    """Runs attempts engine by engine until one is conclusive."""

    def __init__(
        self,
        attempt_runner: AttemptRunner,
        engines: Sequence[str],
        timeline: Optional[TimelineLogger] = None,
    ):
        if not engines:
            raise ValueError("At least one browser engine is required")
        self.attempt_runner = attempt_runner
        self.engines = tuple(engines)
        self.timeline = timeline
        self.state = SequencerState.NOT_STARTED
        self.engine_index = 0

    def run(
        self,
        project_root: Path,
        relative_spec_path: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> SequenceResult:
        """Attempt engines in order and return every record produced.

        Never attempts an engine twice, so at most ``len(engines)``
        processes are spawned.
        """
        if self.state != SequencerState.NOT_STARTED:
            raise RuntimeError("FallbackSequencer instances are single-use")

        result = SequenceResult(cumulative_log=LOG_HEADER)
        previous: Optional[AttemptRecord] = None
        self.state = SequencerState.ATTEMPTING

        while self.state == SequencerState.ATTEMPTING:
            engine = self.engines[self.engine_index]
            result.cumulative_log += attempt_marker(engine, previous)

            record = self.attempt_runner.run(
                engine,
                project_root,
                relative_spec_path,
                index=self.engine_index,
                cancel_event=cancel_event,
            )
            result.records.append(record)
            result.cumulative_log += record.log

            is_last = self.engine_index == len(self.engines) - 1
            if record.outcome.triggers_fallback and not is_last:
                next_engine = self.engines[self.engine_index + 1]
                logger.warning(
                    "%s hit %s; falling back to %s",
                    engine_label(engine),
                    record.outcome.defect_kind,
                    engine_label(next_engine),
                )
                if self.timeline:
                    self.timeline.engine_fallback(
                        from_engine=engine,
                        to_engine=next_engine,
                        reason=record.outcome.defect_kind or "",
                    )
                previous = record
                self.engine_index += 1
            else:
                self.state = SequencerState.DONE

        return result
