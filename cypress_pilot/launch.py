"""Headed launch of a generated spec.

Starts ``cypress run --headed`` in the background and judges from its
first few seconds of output whether the run got going. The process is
left running so the user can watch the browser window.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .config import PilotConfig, default_config
from .exec import ExecResult, sample_command_output
from .materialize import MaterializeError, materialize_spec


logger = logging.getLogger(__name__)

STDERR_ERROR_PHRASES = ("cannot find module", "no version of", "failed to connect")
RUN_STARTED_PHRASES = ("(run starting)", "running:")
LAUNCH_PHRASES = RUN_STARTED_PHRASES + ("devtools listening",)
STDOUT_ERROR_PHRASES = ("error:", "failed")


class LaunchStatus(str, Enum):
    LAUNCHED = "launched"
    ERROR = "error"


@dataclass
class LaunchResult:
    """Outcome of a headed launch."""
    status: LaunchStatus
    message: str
    spec_path: Optional[Path] = None
    detailed_log: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status.value, "message": self.message}
        if self.spec_path is not None:
            data["specPath"] = str(self.spec_path)
        if self.detailed_log is not None:
            data["detailedErrorLog"] = self.detailed_log
        return data


def classify_launch(sample: ExecResult, relative_spec_path: str) -> LaunchResult:
    """Judge early output of a headed run."""
    stdout = sample.stdout
    stderr = sample.stderr
    out = stdout.lower()
    err = stderr.lower()

    if not sample.started:
        return LaunchResult(
            LaunchStatus.ERROR,
            f"Failed to start Cypress: {sample.error}.",
            detailed_log=(
                f"Spawn error: {sample.error}\nEnsure Cypress is installed in the "
                f"project or globally and necessary dependencies (like browsers) are present."
            ),
        )

    if "xvfb" in err:
        return LaunchResult(
            LaunchStatus.ERROR,
            "Cypress Headed Run Failed: Missing Xvfb dependency.",
            detailed_log=(
                "Xvfb is required for headed Cypress execution in this environment. "
                f"Please install Xvfb and try again. Error details:\n{stderr[:1000]}\n"
                f"Stdout (if any):\n{stdout[:500]}"
            ),
        )

    run_started = any(p in out for p in RUN_STARTED_PHRASES)
    if any(p in err for p in STDERR_ERROR_PHRASES) or (stderr.strip() and not run_started):
        return LaunchResult(
            LaunchStatus.ERROR,
            "Cypress run may have encountered an issue. Check the detailed log.",
            detailed_log=f"Stderr output likely indicates an error:\n{stderr[:1000]}\nStdout:\n{stdout[:500]}",
        )

    if any(p in out for p in LAUNCH_PHRASES):
        return LaunchResult(
            LaunchStatus.LAUNCHED,
            f"Cypress headed test run initiated for spec: {relative_spec_path}. Check the browser window.",
            detailed_log=f"Stdout (run initiated):\n{stdout[:500]}\nStderr (if any):\n{stderr[:300]}",
        )

    if not stdout.strip() and not stderr.strip():
        return LaunchResult(
            LaunchStatus.LAUNCHED,
            f"Cypress headed run initiated for spec: {relative_spec_path}. "
            f"No immediate output; check for a browser window.",
        )

    if any(p in out for p in STDOUT_ERROR_PHRASES):
        return LaunchResult(
            LaunchStatus.ERROR,
            "Cypress reported an issue on stdout during run initiation. Check detailed logs.",
            detailed_log=f"Stdout (potential error):\n{stdout[:1000]}\nStderr (if any):\n{stderr[:300]}",
        )

    return LaunchResult(
        LaunchStatus.LAUNCHED,
        f"Cypress headed test run initiated for spec: {relative_spec_path}. Check browser window.",
        detailed_log=f"Stdout: {stdout[:500]}\nStderr (if any):\n{stderr[:300]}",
    )


def build_headed_command(config: PilotConfig, relative_spec_path: str) -> List[str]:
    return [
        *config.runner.command,
        *config.runner.base_args,
        "--headed",
        "--spec", relative_spec_path,
    ]


def launch_headed(
    test_source: str,
    project_root: Union[str, Path],
    file_name: str,
    config: Optional[PilotConfig] = None,
) -> LaunchResult:
    """Save the spec and start a headed Cypress run in the background."""
    config = config or default_config()
    try:
        spec = materialize_spec(project_root, file_name, test_source, spec_dir=config.runner.spec_dir)
    except MaterializeError as e:
        return LaunchResult(
            LaunchStatus.ERROR,
            str(e),
            spec_path=e.spec_path,
            detailed_log=f"File save error: {e}",
        )

    command = build_headed_command(config, spec.relative_path)
    logger.info("Launching headed run for %s", spec.relative_path)
    sample = sample_command_output(
        command,
        cwd=Path(project_root),
        window_seconds=config.runner.launch_window_seconds,
    )

    result = classify_launch(sample, spec.relative_path)
    result.spec_path = spec.path
    return result
