"""Folding attempt records into the public execution result."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .attempt import engine_label
from .classify import COMPLETED_WITH_FAILURES, OutcomeKind
from .config import DEFAULT_MAX_LOG_CHARS
from .fallback import SequenceResult


class ExecutionStatus(str, Enum):
    """Final status of an execute() call."""
    COMPLETED_SUCCESSFULLY = "completed_successfully"
    COMPLETED_WITH_FAILURES = "completed_with_failures"
    ERROR_RUNNING = "error_running"
    ERROR_SAVING_FILE = "error_saving_file"
    CANCELED = "canceled"


@dataclass
class ExecutionResult:
    """Outcome of one execution request."""
    status: ExecutionStatus
    message: str
    spec_path: Optional[Path] = None
    run_summary: Optional[str] = None
    detailed_log: Optional[str] = None
    attempts: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED_SUCCESSFULLY

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (camelCase keys, optional fields omitted)."""
        data: Dict[str, Any] = {
            "status": self.status.value,
            "message": self.message,
            "attempts": list(self.attempts),
        }
        if self.spec_path is not None:
            data["specPath"] = str(self.spec_path)
        if self.run_summary is not None:
            data["runSummary"] = self.run_summary
        if self.detailed_log is not None:
            data["detailedLog"] = self.detailed_log
        return data


def truncate_log(text: str, max_chars: int = DEFAULT_MAX_LOG_CHARS) -> str:
    """Hard cap: the result is exactly ``min(len(text), max_chars)`` long."""
    if max_chars < 0:
        raise ValueError("max_chars must not be negative")
    return text[:max_chars]


_STATUS_BY_KIND = {
    OutcomeKind.SUCCESS: ExecutionStatus.COMPLETED_SUCCESSFULLY,
    OutcomeKind.ENVIRONMENT_DEFECT: ExecutionStatus.ERROR_RUNNING,
    OutcomeKind.STARTUP_FAILURE: ExecutionStatus.ERROR_RUNNING,
    OutcomeKind.CANCELED: ExecutionStatus.CANCELED,
}


class OutcomeReporter:
    """Maps the terminal attempt onto an ExecutionResult."""

    def __init__(self, max_log_chars: int = DEFAULT_MAX_LOG_CHARS):
        self.max_log_chars = max_log_chars

    def status_for(self, sequence: SequenceResult) -> ExecutionStatus:
        outcome = sequence.terminal.outcome
        if outcome.kind == OutcomeKind.RUN_FAILURE:
            if outcome.failure_kind == COMPLETED_WITH_FAILURES:
                return ExecutionStatus.COMPLETED_WITH_FAILURES
            return ExecutionStatus.ERROR_RUNNING
        return _STATUS_BY_KIND[outcome.kind]

    def report(self, sequence: SequenceResult, spec_path: Optional[Path]) -> ExecutionResult:
        """Build the result for a finished fallback sequence."""
        terminal = sequence.terminal
        status = self.status_for(sequence)

        message = terminal.message
        if len(sequence.records) > 1 and status != ExecutionStatus.COMPLETED_SUCCESSFULLY:
            tried = " then ".join(engine_label(e) for e in sequence.engines_tried)
            message = f"{message} (after trying {tried})."

        detailed_log = (
            sequence.cumulative_log
            + f"\nFinal Result from {engine_label(terminal.engine)} attempt:\n"
            + terminal.full_log
        )

        return ExecutionResult(
            status=status,
            message=message,
            spec_path=spec_path,
            run_summary=terminal.run_summary,
            detailed_log=truncate_log(detailed_log, self.max_log_chars),
            attempts=sequence.engines_tried,
        )

    def report_save_failure(self, error: str, spec_path: Optional[Path] = None) -> ExecutionResult:
        """Result for a spec file that could not be written; nothing ran."""
        return ExecutionResult(
            status=ExecutionStatus.ERROR_SAVING_FILE,
            message=error,
            spec_path=spec_path,
            detailed_log=truncate_log(f"File save error: {error}", self.max_log_chars),
        )
