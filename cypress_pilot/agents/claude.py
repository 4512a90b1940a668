"""Claude CLI invocation wrapper for cypress-pilot.

Provides consistent interface for calling the Claude CLI with:
- Configurable command (via CYPRESS_PILOT_CLAUDE_CMD)
- Timeout handling
- Output capture
- Timeline events
"""

from __future__ import annotations

import os
import shlex
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..exec import run_command
from ..timeline import TimelineLogger


# Default Claude CLI command
DEFAULT_CLAUDE_CMD = "claude"

CLAUDE_CMD_ENV_VAR = "CYPRESS_PILOT_CLAUDE_CMD"


@dataclass
class ClaudeResult:
    """Result of a Claude CLI invocation."""
    success: bool
    output: str
    exit_code: Optional[int]
    duration_ms: int
    error: Optional[str] = None
    stderr: str = ""
    timed_out: bool = False

    @property
    def truncated_output(self) -> str:
        """Get output truncated for display."""
        if len(self.output) <= 5000:
            return self.output
        return self.output[:2500] + "\n\n... [truncated] ...\n\n" + self.output[-2500:]


class ClaudeRunner:
    """Runner for Claude CLI invocations.

    Each invocation is a single blocking call with no retries.
    """

    def __init__(
        self,
        claude_cmd: Optional[str] = None,
        default_timeout: int = 600,
        timeline: Optional[TimelineLogger] = None,
        cwd: Optional[Path] = None,
    ):
        """Initialize Claude runner.

        Args:
            claude_cmd: Claude CLI command. Defaults to CYPRESS_PILOT_CLAUDE_CMD env var.
            default_timeout: Default timeout in seconds.
            timeline: Timeline logger for events.
            cwd: Working directory for the CLI.
        """
        self.claude_cmd = claude_cmd or os.environ.get(CLAUDE_CMD_ENV_VAR, DEFAULT_CLAUDE_CMD)
        self.default_timeout = default_timeout
        self.timeline = timeline
        self.cwd = cwd

    def _get_claude_args(self, prompt: str, model: Optional[str] = None) -> List[str]:
        """Build command arguments for Claude CLI."""
        args = shlex.split(self.claude_cmd)

        # Non-interactive mode
        args.append("--print")

        if model:
            args.extend(["--model", model])

        args.extend(["-p", prompt])
        return args

    def invoke(
        self,
        prompt: str,
        role: str,
        model: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> ClaudeResult:
        """Invoke Claude CLI with a prompt.

        Args:
            prompt: Prompt text to send.
            role: Agent role (for logging).
            model: Model name override.
            timeout: Timeout in seconds (defaults to default_timeout).

        Returns:
            ClaudeResult with response and metadata.
        """
        if timeout is None:
            timeout = self.default_timeout

        args = self._get_claude_args(prompt=prompt, model=model)

        if self.timeline:
            self.timeline.generation_start(role=role, model=model)

        start_time = time.time()
        exec_result = run_command(command=args, cwd=self.cwd, timeout=timeout)
        duration_ms = int((time.time() - start_time) * 1000)

        result = ClaudeResult(
            success=exec_result.success,
            output=exec_result.stdout,
            exit_code=exec_result.exit_code,
            duration_ms=duration_ms,
            error=exec_result.error,
            stderr=exec_result.stderr,
            timed_out=exec_result.timed_out,
        )

        if self.timeline:
            if result.success:
                self.timeline.generation_complete(role=role, duration_ms=duration_ms)
            else:
                self.timeline.generation_failed(
                    role=role,
                    error=result.error or f"Exit code {result.exit_code}",
                    duration_ms=duration_ms,
                )

        return result
