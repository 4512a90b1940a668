"""Subprocess execution runner for cypress-pilot.

Provides subprocess execution with:
- Configurable timeouts
- Concurrent stdout/stderr draining with per-chunk callbacks
- Cooperative cancellation of the running child
- Environment overrides scoped to the child process
"""

from __future__ import annotations

import os
import shlex
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union


# Default timeout for commands (30 minutes)
DEFAULT_TIMEOUT = 1800

# Maximum output to display in console (characters)
MAX_DISPLAY_OUTPUT = 5000

# Maximum output to store in result (characters)
MAX_STORED_OUTPUT = 100000

# How often the supervisor loop checks for cancellation and deadlines
POLL_INTERVAL = 0.1

# Time between SIGTERM and SIGKILL when stopping a child
TERMINATE_GRACE = 5.0

# How long to wait for reader threads after the child is gone
READER_JOIN_TIMEOUT = 5.0

_KILL_SIGNAL = getattr(signal, "SIGKILL", signal.SIGTERM)

STDOUT = "stdout"
STDERR = "stderr"

# Called with (stream_name, chunk) for every chunk read from the child
OutputCallback = Callable[[str, str], None]


def utc_now_iso() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class ExecResult:
    """Result of a subprocess execution.

    ``exit_code`` is None when the process never started, or when it was
    still running at the end of a sampling window.
    """
    command: str
    exit_code: Optional[int]
    stdout: str
    stderr: str
    duration_ms: int
    started: bool = True
    timed_out: bool = False
    canceled: bool = False
    still_running: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        """Check if command succeeded (exit code 0)."""
        return self.exit_code == 0 and not self.timed_out and not self.canceled

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        parts = []
        if self.stdout:
            parts.append(self.stdout)
        if self.stderr:
            parts.append(self.stderr)
        return "\n".join(parts)

    def truncated_output(self, max_chars: int = MAX_DISPLAY_OUTPUT) -> str:
        """Get output truncated to max characters for display."""
        output = self.output
        if len(output) <= max_chars:
            return output

        # Keep first and last portions
        head_size = max_chars // 2
        tail_size = max_chars - head_size - 50  # Leave room for truncation message

        return (
            output[:head_size] +
            f"\n\n... [truncated {len(output) - max_chars} characters] ...\n\n" +
            output[-tail_size:]
        )


def _truncate_output(output: str, max_chars: int = MAX_STORED_OUTPUT) -> str:
    """Truncate output to maximum size."""
    if len(output) <= max_chars:
        return output

    head_size = max_chars // 2
    tail_size = max_chars - head_size - 100

    return (
        output[:head_size] +
        f"\n\n... [output truncated: {len(output)} total characters, "
        f"showing first {head_size} and last {tail_size}] ...\n\n" +
        output[-tail_size:]
    )


def format_command(command: Union[str, List[str]]) -> str:
    """Render a command for logs."""
    if isinstance(command, str):
        return command
    return " ".join(shlex.quote(arg) for arg in command)


def build_env(overrides: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Copy of the host environment with overrides applied.

    The host ``os.environ`` is never modified.
    """
    run_env = os.environ.copy()
    if overrides:
        run_env.update({key: str(value) for key, value in overrides.items()})
    return run_env


def _spawn_error_message(exc: BaseException) -> str:
    if isinstance(exc, FileNotFoundError):
        return f"Command not found: {exc}"
    if isinstance(exc, PermissionError):
        return f"Permission denied: {exc}"
    return f"Execution error: {exc}"


def run_command(
    command: Union[str, List[str]],
    cwd: Optional[Path] = None,
    timeout: Optional[int] = None,
    env: Optional[Dict[str, str]] = None,
    input_text: Optional[str] = None,
) -> ExecResult:
    """Run a command to completion and capture output.

    Args:
        command: Command to run (string or list of args).
        cwd: Working directory.
        timeout: Timeout in seconds (default: DEFAULT_TIMEOUT).
        env: Environment variable overrides (merged with current env).
        input_text: Text sent to the child's stdin.

    Returns:
        ExecResult with command results.
    """
    if timeout is None:
        timeout = DEFAULT_TIMEOUT

    cmd_str = format_command(command)
    if isinstance(command, str):
        command = shlex.split(command)

    start_time = time.time()
    stdout_data = ""
    stderr_data = ""
    timed_out = False
    started = True
    error_msg = None
    exit_code: Optional[int] = None

    try:
        result = subprocess.run(
            command,
            cwd=str(cwd) if cwd else None,
            env=build_env(env),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            input=input_text,
            stdin=None if input_text is not None else subprocess.DEVNULL,
            timeout=timeout,
        )

        exit_code = result.returncode
        stdout_data = result.stdout or ""
        stderr_data = result.stderr or ""

    except subprocess.TimeoutExpired as e:
        timed_out = True
        error_msg = f"Command timed out after {timeout}s"

        # Capture any partial output
        if e.stdout:
            stdout_data = e.stdout if isinstance(e.stdout, str) else e.stdout.decode("utf-8", errors="replace")
        if e.stderr:
            stderr_data = e.stderr if isinstance(e.stderr, str) else e.stderr.decode("utf-8", errors="replace")

    except OSError as e:
        started = False
        error_msg = _spawn_error_message(e)

    duration_ms = int((time.time() - start_time) * 1000)

    return ExecResult(
        command=cmd_str,
        exit_code=exit_code,
        stdout=_truncate_output(stdout_data),
        stderr=_truncate_output(stderr_data),
        duration_ms=duration_ms,
        started=started,
        timed_out=timed_out,
        error=error_msg,
    )


def _drain(
    stream,
    name: str,
    sink: List[str],
    on_output: Optional[OutputCallback],
) -> None:
    """Read a child stream until EOF."""
    try:
        for chunk in iter(stream.readline, ""):
            sink.append(chunk)
            if on_output is not None:
                on_output(name, chunk)
    finally:
        stream.close()


def _start_readers(
    process: subprocess.Popen,
    stdout_chunks: List[str],
    stderr_chunks: List[str],
    on_output: Optional[OutputCallback],
) -> List[threading.Thread]:
    readers = [
        threading.Thread(
            target=_drain,
            args=(process.stdout, STDOUT, stdout_chunks, on_output),
            daemon=True,
        ),
        threading.Thread(
            target=_drain,
            args=(process.stderr, STDERR, stderr_chunks, on_output),
            daemon=True,
        ),
    ]
    for reader in readers:
        reader.start()
    return readers


def _signal_group(process: subprocess.Popen, sig: int) -> None:
    """Signal the child's process group, or the child alone where groups are unavailable."""
    if sys.platform != "win32":
        try:
            os.killpg(process.pid, sig)
            return
        except (ProcessLookupError, PermissionError):
            pass
    if process.poll() is None:
        process.send_signal(sig)


def terminate_process(process: subprocess.Popen, grace: float = TERMINATE_GRACE) -> None:
    """Stop a child and everything it spawned.

    The child is expected to lead its own session (``start_new_session``),
    so wrapper commands such as ``npx`` take their descendants down with
    them. SIGTERM goes to the group first, SIGKILL after ``grace`` seconds.
    """
    if process.poll() is not None:
        return
    _signal_group(process, signal.SIGTERM)
    try:
        process.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        _signal_group(process, _KILL_SIGNAL)
        process.wait()
        return
    # Descendants that ignored SIGTERM
    _signal_group(process, _KILL_SIGNAL)


def run_command_streaming(
    command: List[str],
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
    env: Optional[Dict[str, str]] = None,
    on_output: Optional[OutputCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ExecResult:
    """Run a command while draining stdout and stderr concurrently.

    Both streams are read by dedicated threads as data arrives, so neither
    pipe can fill up and stall the child. The call returns only after the
    child has exited (or was stopped) and both readers reached end of
    stream.

    Args:
        command: Command as a list of arguments.
        cwd: Working directory.
        timeout: Wall-clock limit in seconds; None disables it.
        env: Environment variable overrides for the child only.
        on_output: Callback invoked with (stream_name, chunk).
        cancel_event: When set, the child is terminated.

    Returns:
        ExecResult with command results.
    """
    cmd_str = format_command(command)
    start_time = time.time()
    stdout_chunks: List[str] = []
    stderr_chunks: List[str] = []
    timed_out = False
    canceled = False

    try:
        process = subprocess.Popen(
            command,
            cwd=str(cwd) if cwd else None,
            env=build_env(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            start_new_session=True,
        )
    except (OSError, ValueError) as e:
        return ExecResult(
            command=cmd_str,
            exit_code=None,
            stdout="",
            stderr="",
            duration_ms=int((time.time() - start_time) * 1000),
            started=False,
            error=_spawn_error_message(e),
        )

    readers = _start_readers(process, stdout_chunks, stderr_chunks, on_output)
    deadline = time.monotonic() + timeout if timeout is not None else None

    while True:
        try:
            process.wait(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            pass
        if cancel_event is not None and cancel_event.is_set():
            canceled = True
            terminate_process(process)
            break
        if deadline is not None and time.monotonic() >= deadline:
            timed_out = True
            terminate_process(process)
            break

    for reader in readers:
        reader.join(timeout=READER_JOIN_TIMEOUT)

    error_msg = None
    if timed_out:
        error_msg = f"Command timed out after {timeout}s"
    elif canceled:
        error_msg = "Command canceled"

    return ExecResult(
        command=cmd_str,
        exit_code=process.returncode,
        stdout=_truncate_output("".join(stdout_chunks)),
        stderr=_truncate_output("".join(stderr_chunks)),
        duration_ms=int((time.time() - start_time) * 1000),
        timed_out=timed_out,
        canceled=canceled,
        error=error_msg,
    )


def sample_command_output(
    command: List[str],
    cwd: Optional[Path] = None,
    window_seconds: float = 5.0,
    env: Optional[Dict[str, str]] = None,
) -> ExecResult:
    """Start a long-running command and capture its first output.

    The child is started in its own session and left running after the
    sampling window ends; ``still_running`` reports whether it was alive
    when sampling stopped.
    """
    cmd_str = format_command(command)
    start_time = time.time()
    stdout_chunks: List[str] = []
    stderr_chunks: List[str] = []

    try:
        process = subprocess.Popen(
            command,
            cwd=str(cwd) if cwd else None,
            env=build_env(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            start_new_session=True,
        )
    except (OSError, ValueError) as e:
        return ExecResult(
            command=cmd_str,
            exit_code=None,
            stdout="",
            stderr="",
            duration_ms=int((time.time() - start_time) * 1000),
            started=False,
            error=_spawn_error_message(e),
        )

    readers = _start_readers(process, stdout_chunks, stderr_chunks, None)
    try:
        process.wait(timeout=window_seconds)
        for reader in readers:
            reader.join(timeout=READER_JOIN_TIMEOUT)
    except subprocess.TimeoutExpired:
        pass

    return ExecResult(
        command=cmd_str,
        exit_code=process.poll(),
        stdout="".join(stdout_chunks),
        stderr="".join(stderr_chunks),
        duration_ms=int((time.time() - start_time) * 1000),
        still_running=process.poll() is None,
    )
