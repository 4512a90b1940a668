"""Unit tests for OutcomeReporter and log truncation."""

from pathlib import Path

import pytest

from cypress_pilot.attempt import AttemptRecord
from cypress_pilot.classify import (
    COMPLETED_WITH_FAILURES,
    DEFAULT_DEFECT_SIGNATURES,
    DID_NOT_COMPLETE,
    AttemptOutcome,
)
from cypress_pilot.fallback import LOG_HEADER, SequenceResult
from cypress_pilot.report import (
    ExecutionResult,
    ExecutionStatus,
    OutcomeReporter,
    truncate_log,
)


XVFB = DEFAULT_DEFECT_SIGNATURES[0]


def make_record(engine: str, outcome: AttemptOutcome, message: str = "msg.", **kwargs) -> AttemptRecord:
    defaults = dict(
        command=f"npx cypress run --browser {engine}",
        exit_code=0,
        stdout="out",
        stderr="",
        log=f"Attempting with {engine}\n",
    )
    defaults.update(kwargs)
    return AttemptRecord(engine=engine, outcome=outcome, message=message, **defaults)


def make_sequence(*records: AttemptRecord) -> SequenceResult:
    log = LOG_HEADER + "".join(r.log for r in records)
    return SequenceResult(records=list(records), cumulative_log=log)


class TestTruncateLog:
    """Hard cap on diagnostic text."""

    @pytest.mark.parametrize("length", [99, 100, 101])
    def test_boundaries(self, length):
        text = "x" * length
        assert len(truncate_log(text, 100)) == min(length, 100)

    def test_keeps_prefix(self):
        assert truncate_log("abcdef", 3) == "abc"

    def test_short_text_unchanged(self):
        assert truncate_log("short", 2500) == "short"

    def test_zero_cap(self):
        assert truncate_log("anything", 0) == ""

    def test_negative_cap_rejected(self):
        with pytest.raises(ValueError):
            truncate_log("x", -1)


class TestStatusMapping:
    """Terminal outcome to ExecutionStatus."""

    @pytest.mark.parametrize(
        "outcome,status",
        [
            (AttemptOutcome.success(), ExecutionStatus.COMPLETED_SUCCESSFULLY),
            (AttemptOutcome.run_failure(COMPLETED_WITH_FAILURES), ExecutionStatus.COMPLETED_WITH_FAILURES),
            (AttemptOutcome.run_failure(DID_NOT_COMPLETE), ExecutionStatus.ERROR_RUNNING),
            (AttemptOutcome.environment_defect(XVFB), ExecutionStatus.ERROR_RUNNING),
            (AttemptOutcome.startup_failure(), ExecutionStatus.ERROR_RUNNING),
            (AttemptOutcome.canceled(), ExecutionStatus.CANCELED),
        ],
    )
    def test_status_for(self, outcome, status):
        reporter = OutcomeReporter()
        sequence = make_sequence(make_record("chrome", outcome))
        assert reporter.status_for(sequence) == status


class TestReport:
    """Message, log and attachments of the final result."""

    def test_single_attempt_message_unchanged(self):
        reporter = OutcomeReporter()
        sequence = make_sequence(
            make_record("chrome", AttemptOutcome.run_failure(COMPLETED_WITH_FAILURES), "Run failed.")
        )
        result = reporter.report(sequence, spec_path=Path("/p/cypress/e2e/a.cy.ts"))
        assert result.message == "Run failed."
        assert result.attempts == ["chrome"]
        assert result.spec_path == Path("/p/cypress/e2e/a.cy.ts")

    def test_fallback_suffix_after_two_attempts(self):
        reporter = OutcomeReporter()
        sequence = make_sequence(
            make_record("chrome", AttemptOutcome.environment_defect(XVFB)),
            make_record("firefox", AttemptOutcome.environment_defect(XVFB), "Firefox failed."),
        )
        result = reporter.report(sequence, spec_path=None)
        assert result.status == ExecutionStatus.ERROR_RUNNING
        assert result.message == "Firefox failed. (after trying Chrome then Firefox)."
        assert result.attempt_count == 2

    def test_no_suffix_on_success_after_fallback(self):
        reporter = OutcomeReporter()
        sequence = make_sequence(
            make_record("chrome", AttemptOutcome.environment_defect(XVFB)),
            make_record("firefox", AttemptOutcome.success(), "Passed."),
        )
        result = reporter.report(sequence, spec_path=None)
        assert result.success
        assert result.message == "Passed."

    def test_detailed_log_layout(self):
        reporter = OutcomeReporter()
        record = make_record(
            "firefox",
            AttemptOutcome.success(),
            exit_code=0,
            stdout="All specs passed!",
            stderr="warn",
        )
        result = reporter.report(make_sequence(record), spec_path=None)
        assert result.detailed_log.startswith(LOG_HEADER)
        assert "\nFinal Result from Firefox attempt:\n" in result.detailed_log
        assert "Exit Code: 0" in result.detailed_log
        assert "Stdout:\nAll specs passed!" in result.detailed_log
        assert "Stderr:\nwarn" in result.detailed_log

    def test_detailed_log_truncated_to_cap(self):
        reporter = OutcomeReporter(max_log_chars=50)
        record = make_record("chrome", AttemptOutcome.success(), stdout="y" * 500)
        result = reporter.report(make_sequence(record), spec_path=None)
        assert len(result.detailed_log) == 50

    def test_run_summary_carried_from_terminal(self):
        reporter = OutcomeReporter()
        record = make_record("chrome", AttemptOutcome.success(), run_summary="Run Summary\nrow")
        result = reporter.report(make_sequence(record), spec_path=None)
        assert result.run_summary == "Run Summary\nrow"

    def test_save_failure(self):
        reporter = OutcomeReporter(max_log_chars=20)
        result = reporter.report_save_failure("Repository path does not exist: /nope")
        assert result.status == ExecutionStatus.ERROR_SAVING_FILE
        assert result.attempts == []
        assert result.detailed_log == "File save error: Rep"


class TestExecutionResultDict:
    """Wire representation."""

    def test_camel_case_keys(self):
        result = ExecutionResult(
            status=ExecutionStatus.COMPLETED_SUCCESSFULLY,
            message="ok",
            spec_path=Path("/p/a.cy.ts"),
            run_summary="Tests passed.",
            detailed_log="log",
            attempts=["chrome"],
        )
        data = result.to_dict()
        assert data == {
            "status": "completed_successfully",
            "message": "ok",
            "attempts": ["chrome"],
            "specPath": "/p/a.cy.ts",
            "runSummary": "Tests passed.",
            "detailedLog": "log",
        }

    def test_optional_fields_omitted(self):
        data = ExecutionResult(ExecutionStatus.ERROR_SAVING_FILE, "nope").to_dict()
        assert "specPath" not in data
        assert "runSummary" not in data
        assert "detailedLog" not in data
