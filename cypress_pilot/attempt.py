"""Single Cypress run attempt against one browser engine.

One call spawns exactly one runner process, drains both of its output
streams, classifies the result and returns an immutable AttemptRecord.
Retrying with another engine is the sequencer's job, not this module's.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .classify import (
    COMPLETED_WITH_FAILURES,
    AttemptOutcome,
    OutcomeKind,
    Signatures,
    classify_attempt,
    extract_run_summary,
)
from .config import RunnerConfig
from .exec import STDERR, format_command, run_command_streaming
from .timeline import TimelineLogger


logger = logging.getLogger(__name__)

# Characters of each output chunk copied into the attempt log
LOG_CHUNK_CHARS = 200


def engine_label(engine: str) -> str:
    """Human-readable engine name ("chrome" -> "Chrome")."""
    return engine[:1].upper() + engine[1:]


@dataclass(frozen=True)
class AttemptRecord:
    """Finalized result of one attempt."""
    engine: str
    command: str
    exit_code: Optional[int]
    stdout: str
    stderr: str
    outcome: AttemptOutcome
    message: str
    log: str
    duration_ms: int = 0
    run_summary: Optional[str] = None
    timed_out: bool = False

    @property
    def full_log(self) -> str:
        """Exit code plus complete captured streams."""
        return (
            f"Browser: {engine_label(self.engine)}\n"
            f"Exit Code: {self.exit_code}\n\n"
            f"Stdout:\n{self.stdout}\n\n"
            f"Stderr:\n{self.stderr}"
        )


def _describe(
    outcome: AttemptOutcome,
    label: str,
    relative_spec_path: str,
    exit_code: Optional[int],
    error: Optional[str],
    timeout: Optional[float],
    timed_out: bool,
) -> str:
    """Message safe to show to a user for one classified attempt."""
    if outcome.kind == OutcomeKind.SUCCESS:
        return (
            f"Cypress headless run with {label} for spec: "
            f"{relative_spec_path} completed successfully."
        )
    if outcome.kind == OutcomeKind.ENVIRONMENT_DEFECT:
        return (
            f"Cypress Run with {label} Failed: "
            f"{outcome.defect.dependency} dependency reported."
        )
    if outcome.kind == OutcomeKind.CANCELED:
        return f"Cypress run with {label} was canceled."
    if outcome.kind == OutcomeKind.STARTUP_FAILURE:
        if timed_out:
            return f"Cypress run with {label} timed out after {timeout}s."
        return f"Failed to start Cypress run with {label}: {error}."
    if outcome.failure_kind == COMPLETED_WITH_FAILURES:
        verdict = "completed with failures/errors"
    else:
        verdict = "did not complete as expected"
    return (
        f"Cypress headless run with {label} for spec: {relative_spec_path} "
        f"{verdict}. Exit code: {exit_code}."
    )


class AttemptRunner:
    """Runs the Cypress binary once for a given engine."""

    def __init__(
        self,
        runner_config: Optional[RunnerConfig] = None,
        signatures: Optional[Signatures] = None,
        timeline: Optional[TimelineLogger] = None,
    ):
        self.config = runner_config or RunnerConfig()
        self.signatures = signatures or Signatures()
        self.timeline = timeline

    def build_command(self, engine: str, relative_spec_path: str) -> List[str]:
        """Argument vector for one attempt."""
        return [
            *self.config.command,
            *self.config.base_args,
            "--browser", engine,
            "--headless",
            "--config", "video=false",
            "--spec", relative_spec_path,
        ]

    def run(
        self,
        engine: str,
        project_root: Path,
        relative_spec_path: str,
        index: int = 0,
        cancel_event: Optional[threading.Event] = None,
    ) -> AttemptRecord:
        """Run one attempt and classify it.

        Spawn errors never propagate; they become a startup failure record.
        """
        label = engine_label(engine)
        command = self.build_command(engine, relative_spec_path)
        cmd_str = format_command(command)

        log_lines: List[str] = [f"Attempting with {label}: {cmd_str}\n"]
        log_lock = threading.Lock()

        def on_output(stream: str, chunk: str) -> None:
            prefix = "STDERR" if stream == STDERR else "STDOUT"
            with log_lock:
                log_lines.append(f"{prefix}: {chunk[:LOG_CHUNK_CHARS].rstrip()}\n")

        if self.timeline:
            self.timeline.attempt_start(engine=engine, index=index, command=cmd_str)
        logger.info("Running %s against %s", relative_spec_path, label)

        result = run_command_streaming(
            command,
            cwd=project_root,
            timeout=self.config.timeout_seconds,
            env=self.config.env,
            on_output=on_output,
            cancel_event=cancel_event,
        )

        outcome = classify_attempt(
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
            signatures=self.signatures,
            started=result.started,
            timed_out=result.timed_out,
            canceled=result.canceled,
        )

        if not result.started:
            log_lines.append(f"Spawn error for {label}: {result.error}\n")
        elif result.timed_out:
            log_lines.append(
                f"Process for {label} timed out after {self.config.timeout_seconds}s "
                f"and was stopped\n"
            )
        elif result.canceled:
            log_lines.append(f"Process for {label} was canceled\n")
        else:
            log_lines.append(f"Process for {label} closed with code {result.exit_code}\n")

        run_summary = None
        if outcome.kind in (OutcomeKind.SUCCESS, OutcomeKind.RUN_FAILURE):
            run_summary = extract_run_summary(result.stdout)
            if run_summary is None:
                if outcome.kind == OutcomeKind.SUCCESS:
                    run_summary = "Tests passed."
                else:
                    run_summary = "Run did not complete successfully or had failures."

        record = AttemptRecord(
            engine=engine,
            command=cmd_str,
            exit_code=result.exit_code if result.started else None,
            stdout=result.stdout,
            stderr=result.stderr,
            outcome=outcome,
            message=_describe(
                outcome,
                label,
                relative_spec_path,
                result.exit_code,
                result.error,
                self.config.timeout_seconds,
                result.timed_out,
            ),
            log="".join(log_lines),
            duration_ms=result.duration_ms,
            run_summary=run_summary,
            timed_out=result.timed_out,
        )

        if self.timeline:
            self.timeline.attempt_end(
                engine=engine,
                outcome=outcome.kind.value,
                exit_code=record.exit_code,
                duration_ms=record.duration_ms,
                error=result.error,
            )
        logger.info("%s attempt finished: %s", label, outcome.kind.value)

        return record
