"""Classification of Cypress runner output.

The runner has no structured success signal, so attempts are judged by
pattern matching on its text streams. Every phrase and pattern used here
lives in a ``Signatures`` value so the rules can be extended from
configuration without touching control flow.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class OutcomeKind(str, Enum):
    """Kinds of attempt outcome."""
    SUCCESS = "success"
    ENVIRONMENT_DEFECT = "environment_defect"
    RUN_FAILURE = "run_failure"
    STARTUP_FAILURE = "startup_failure"
    CANCELED = "canceled"


# Environment defect kinds
DISPLAY_MISSING = "display-missing"
SHARED_LIBRARY_MISSING = "shared-library-missing"

# Run failure sub-kinds
COMPLETED_WITH_FAILURES = "completed_with_failures"
DID_NOT_COMPLETE = "did_not_complete"


@dataclass(frozen=True)
class DefectSignature:
    """Stderr signature of a missing host dependency.

    Matches when every phrase in ``all_of`` appears in the error stream,
    compared case-insensitively.
    """
    kind: str
    all_of: Tuple[str, ...]
    dependency: str

    def matches(self, stderr: str) -> bool:
        lowered = stderr.lower()
        return bool(self.all_of) and all(p.lower() in lowered for p in self.all_of)


DEFAULT_DEFECT_SIGNATURES: Tuple[DefectSignature, ...] = (
    DefectSignature(
        kind=DISPLAY_MISSING,
        all_of=("xvfb", "missing the dependency"),
        dependency="Xvfb",
    ),
    DefectSignature(
        kind=SHARED_LIBRARY_MISSING,
        all_of=("error while loading shared libraries",),
        dependency="shared library",
    ),
)

DEFAULT_PASS_PHRASES: Tuple[str, ...] = ("All specs passed!", "No specs found")
DEFAULT_PASSING_PATTERN = r"\(\d+ passing\)"
DEFAULT_FAILING_PATTERN = r"\(\d+ failing\)"
SUMMARY_START_MARKER = "Run Summary"
SUMMARY_END_MARKER = "Done running"


@dataclass(frozen=True)
class Signatures:
    """Phrases and patterns used to classify runner output."""
    pass_phrases: Tuple[str, ...] = DEFAULT_PASS_PHRASES
    passing_pattern: str = DEFAULT_PASSING_PATTERN
    failing_pattern: str = DEFAULT_FAILING_PATTERN
    defects: Tuple[DefectSignature, ...] = DEFAULT_DEFECT_SIGNATURES

    def __post_init__(self) -> None:
        for name in ("passing_pattern", "failing_pattern"):
            try:
                re.compile(getattr(self, name))
            except re.error as e:
                raise ValueError(f"Invalid regular expression for {name}: {e}") from e

    def find_defect(self, stderr: str) -> Optional[DefectSignature]:
        for signature in self.defects:
            if signature.matches(stderr):
                return signature
        return None

    def has_pass_indicator(self, stdout: str) -> bool:
        if any(phrase in stdout for phrase in self.pass_phrases):
            return True
        return re.search(self.passing_pattern, stdout) is not None

    def has_failing_indicator(self, stdout: str) -> bool:
        return re.search(self.failing_pattern, stdout) is not None


@dataclass(frozen=True)
class AttemptOutcome:
    """Tagged outcome of one runner attempt."""
    kind: OutcomeKind
    defect: Optional[DefectSignature] = None
    failure_kind: Optional[str] = None

    @property
    def triggers_fallback(self) -> bool:
        """Only environment defects move the sequence to the next engine."""
        return self.kind == OutcomeKind.ENVIRONMENT_DEFECT

    @property
    def defect_kind(self) -> Optional[str]:
        return self.defect.kind if self.defect else None

    @classmethod
    def success(cls) -> "AttemptOutcome":
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def environment_defect(cls, defect: DefectSignature) -> "AttemptOutcome":
        return cls(OutcomeKind.ENVIRONMENT_DEFECT, defect=defect)

    @classmethod
    def run_failure(cls, failure_kind: str) -> "AttemptOutcome":
        return cls(OutcomeKind.RUN_FAILURE, failure_kind=failure_kind)

    @classmethod
    def startup_failure(cls) -> "AttemptOutcome":
        return cls(OutcomeKind.STARTUP_FAILURE)

    @classmethod
    def canceled(cls) -> "AttemptOutcome":
        return cls(OutcomeKind.CANCELED)


def classify_attempt(
    exit_code: Optional[int],
    stdout: str,
    stderr: str,
    signatures: Optional[Signatures] = None,
    started: bool = True,
    timed_out: bool = False,
    canceled: bool = False,
) -> AttemptOutcome:
    """Classify one finished attempt.

    Order matters: a child that never started (or had to be stopped) is a
    startup failure; a defect signature in stderr wins over any exit code;
    success needs exit code 0 and a pass indicator; everything else is a
    run failure. A non-zero exit always means ``completed_with_failures``
    once the earlier rules did not match.
    """
    if signatures is None:
        signatures = Signatures()

    if canceled:
        return AttemptOutcome.canceled()
    if not started or timed_out:
        return AttemptOutcome.startup_failure()

    defect = signatures.find_defect(stderr)
    if defect is not None:
        return AttemptOutcome.environment_defect(defect)

    if exit_code == 0 and signatures.has_pass_indicator(stdout):
        return AttemptOutcome.success()

    if exit_code != 0 or signatures.has_failing_indicator(stdout):
        return AttemptOutcome.run_failure(COMPLETED_WITH_FAILURES)
    return AttemptOutcome.run_failure(DID_NOT_COMPLETE)


def extract_run_summary(stdout: str) -> Optional[str]:
    """Return the "Run Summary" table printed at the end of a run.

    Spans from the last summary header up to the last "Done running" line,
    or to the end of output when that line is missing.
    """
    start = stdout.rfind(SUMMARY_START_MARKER)
    if start == -1:
        return None
    end = stdout.rfind(SUMMARY_END_MARKER)
    if end <= start:
        end = len(stdout)
    summary = stdout[start:end].strip()
    return summary or None
