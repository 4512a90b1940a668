"""Headless execution of a generated spec.

``execute`` is the single entry point: it writes the test source into the
project's spec directory, runs Cypress with engine fallback and returns
exactly one ExecutionResult. Once the spec file is written it never
raises; every failure is reported through the result.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .attempt import AttemptRunner
from .config import PilotConfig, default_config
from .fallback import FallbackSequencer
from .materialize import MaterializeError, materialize_spec
from .report import ExecutionResult, OutcomeReporter
from .timeline import TimelineLogger


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionRequest:
    """Test source plus where to put it."""
    test_source: str
    project_root: Path
    file_name: str


class HeadlessRunner:
    """Materializes a spec and runs it headlessly with engine fallback.

    Holds no per-request state, so one instance can serve concurrent
    requests as long as they target different spec files.
    """

    def __init__(
        self,
        config: Optional[PilotConfig] = None,
        timeline: Optional[TimelineLogger] = None,
    ):
        self.config = config or default_config()
        self.timeline = timeline
        self.attempt_runner = AttemptRunner(
            runner_config=self.config.runner,
            signatures=self.config.signatures,
            timeline=timeline,
        )
        self.reporter = OutcomeReporter(max_log_chars=self.config.runner.max_log_chars)

    def execute(
        self,
        request: ExecutionRequest,
        cancel_event: Optional[threading.Event] = None,
    ) -> ExecutionResult:
        """Run one request to completion."""
        try:
            spec = materialize_spec(
                request.project_root,
                request.file_name,
                request.test_source,
                spec_dir=self.config.runner.spec_dir,
            )
        except MaterializeError as e:
            logger.error("Could not save spec: %s", e)
            if self.timeline:
                self.timeline.spec_save_failed(
                    str(e),
                    spec_path=str(e.spec_path) if e.spec_path else None,
                )
            result = self.reporter.report_save_failure(str(e), spec_path=e.spec_path)
            if self.timeline:
                self.timeline.execution_end(result.status.value, attempts=0)
            return result

        if self.timeline:
            self.timeline.spec_saved(str(spec.path))

        sequencer = FallbackSequencer(
            self.attempt_runner,
            self.config.runner.engines,
            timeline=self.timeline,
        )
        sequence = sequencer.run(
            Path(request.project_root),
            spec.relative_path,
            cancel_event=cancel_event,
        )
        result = self.reporter.report(sequence, spec_path=spec.path)

        logger.info(
            "Execution of %s finished: %s after %d attempt(s)",
            spec.relative_path,
            result.status.value,
            result.attempt_count,
        )
        if self.timeline:
            self.timeline.execution_end(result.status.value, attempts=result.attempt_count)
        return result


def execute(
    test_source: str,
    project_root: Union[str, Path],
    file_name: str,
    config: Optional[PilotConfig] = None,
    timeline: Optional[TimelineLogger] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ExecutionResult:
    """Save ``test_source`` as a spec in ``project_root`` and run it headlessly.

    Args:
        test_source: Opaque Cypress test code.
        project_root: Existing Cypress project directory.
        file_name: Spec file name inside the spec directory.
        config: Pilot configuration (defaults when omitted).
        timeline: Optional timeline logger.
        cancel_event: Setting it stops the active run.

    Returns:
        ExecutionResult describing the final outcome.
    """
    request = ExecutionRequest(
        test_source=test_source,
        project_root=Path(project_root),
        file_name=file_name,
    )
    runner = HeadlessRunner(config=config, timeline=timeline)
    return runner.execute(request, cancel_event=cancel_event)
