"""Unit tests for headed launch classification."""

from cypress_pilot.exec import ExecResult
from cypress_pilot.launch import (
    LaunchStatus,
    build_headed_command,
    classify_launch,
    launch_headed,
)
from cypress_pilot.config import default_config


SPEC = "cypress/e2e/login.cy.ts"


def sample(stdout: str = "", stderr: str = "", started: bool = True, error=None) -> ExecResult:
    return ExecResult(
        command="cypress run --headed",
        exit_code=None,
        stdout=stdout,
        stderr=stderr,
        duration_ms=5000,
        started=started,
        still_running=started,
        error=error,
    )


class TestClassifyLaunch:
    def test_spawn_error(self):
        result = classify_launch(sample(started=False, error="Command not found: npx"), SPEC)
        assert result.status == LaunchStatus.ERROR
        assert result.message == "Failed to start Cypress: Command not found: npx."

    def test_xvfb(self):
        result = classify_launch(sample(stderr="Your system is missing the dependency: Xvfb"), SPEC)
        assert result.status == LaunchStatus.ERROR
        assert "Missing Xvfb dependency" in result.message

    def test_run_started(self):
        result = classify_launch(sample(stdout="  (Run Starting)\n  Running: login.cy.ts"), SPEC)
        assert result.status == LaunchStatus.LAUNCHED
        assert SPEC in result.message

    def test_stderr_without_run_start(self):
        result = classify_launch(sample(stderr="something went sideways"), SPEC)
        assert result.status == LaunchStatus.ERROR

    def test_stderr_warning_after_run_start(self):
        result = classify_launch(
            sample(stdout="(Run Starting)", stderr="DevTools warning"), SPEC
        )
        assert result.status == LaunchStatus.LAUNCHED

    def test_module_error(self):
        result = classify_launch(
            sample(stdout="(Run Starting)", stderr="Error: Cannot find module 'cypress'"), SPEC
        )
        assert result.status == LaunchStatus.ERROR

    def test_no_output(self):
        result = classify_launch(sample(), SPEC)
        assert result.status == LaunchStatus.LAUNCHED
        assert "No immediate output" in result.message

    def test_stdout_error(self):
        result = classify_launch(sample(stdout="Error: config file invalid"), SPEC)
        assert result.status == LaunchStatus.ERROR

    def test_unrecognized_stdout(self):
        result = classify_launch(sample(stdout="Compiling..."), SPEC)
        assert result.status == LaunchStatus.LAUNCHED


class TestLaunchHeaded:
    def test_build_command(self):
        assert build_headed_command(default_config(), SPEC) == [
            "npx", "cypress", "run", "--headed", "--spec", SPEC,
        ]

    def test_launch_with_mock(self, pilot_config, project_root, scenario, read_calls):
        scenario("headed")
        result = launch_headed("describe()", project_root, "login.cy.ts", config=pilot_config)

        assert result.status == LaunchStatus.LAUNCHED
        assert result.spec_path == project_root / "cypress" / "e2e" / "login.cy.ts"
        call = read_calls()[0]
        assert call["headed"] is True
        assert call["headless"] is False

    def test_launch_error_with_mock(self, pilot_config, project_root, scenario):
        scenario("headed_error")
        result = launch_headed("describe()", project_root, "login.cy.ts", config=pilot_config)

        assert result.status == LaunchStatus.ERROR
        assert "Cannot find module" in result.detailed_log
        assert result.to_dict()["detailedErrorLog"] == result.detailed_log

    def test_save_failure(self, pilot_config, tmp_path):
        result = launch_headed("describe()", tmp_path / "missing", "a.cy.ts", config=pilot_config)
        assert result.status == LaunchStatus.ERROR
        assert result.message.startswith("Repository path does not exist")
