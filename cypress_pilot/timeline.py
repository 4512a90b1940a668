"""Timeline event logger.

Appends JSONL events to ``<logs_dir>/timeline.jsonl`` so a run can be
reconstructed after the fact (which engines were tried, how long each
attempt took, why a fallback happened).
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


def utc_now_iso() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class EventType(str, Enum):
    """Timeline event types."""
    # Spec file events
    SPEC_SAVED = "spec_saved"
    SPEC_SAVE_FAILED = "spec_save_failed"

    # Attempt events
    ATTEMPT_START = "attempt_start"
    ATTEMPT_END = "attempt_end"
    ENGINE_FALLBACK = "engine_fallback"
    EXECUTION_END = "execution_end"

    # Collaborator events
    CLONE_START = "clone_start"
    CLONE_COMPLETE = "clone_complete"
    CLONE_FAILED = "clone_failed"
    GENERATION_START = "generation_start"
    GENERATION_COMPLETE = "generation_complete"
    GENERATION_FAILED = "generation_failed"


class TimelineLogger:
    """Logger for timeline events in JSONL format.

    Each event is written as a single JSON line with at minimum:
    - ts: ISO 8601 timestamp
    - event: Event type from EventType enum

    Additional fields depend on the event type.
    """

    def __init__(
        self,
        timeline_path: Path,
        run_id: Optional[str] = None,
    ):
        """Initialize timeline logger.

        Args:
            timeline_path: Path to timeline.jsonl file.
            run_id: Identifier included in all events.
        """
        self.timeline_path = timeline_path
        self.run_id = run_id
        self._lock = threading.Lock()

        self.timeline_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.timeline_path.exists():
            self.timeline_path.touch()

    def log(
        self,
        event: EventType,
        engine: Optional[str] = None,
        status: Optional[str] = None,
        duration_ms: Optional[int] = None,
        error: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Log an event to the timeline.

        Args:
            event: Event type.
            engine: Browser engine the event refers to.
            status: Status string.
            duration_ms: Duration in milliseconds.
            error: Error message.
            details: Additional details as a dict.

        Returns:
            The event dict that was written.
        """
        event_data: Dict[str, Any] = {
            "ts": utc_now_iso(),
            "event": event.value if isinstance(event, EventType) else event,
        }

        if self.run_id:
            event_data["run_id"] = self.run_id
        if engine is not None:
            event_data["engine"] = engine
        if status is not None:
            event_data["status"] = status
        if duration_ms is not None:
            event_data["duration_ms"] = duration_ms
        if error is not None:
            event_data["error"] = error
        if details is not None:
            event_data["details"] = details

        line = json.dumps(event_data, separators=(",", ":")) + "\n"
        with self._lock:
            with self.timeline_path.open("a", encoding="utf-8") as f:
                f.write(line)

        return event_data

    # Convenience methods for common events

    def spec_saved(self, spec_path: str) -> Dict[str, Any]:
        return self.log(EventType.SPEC_SAVED, details={"spec_path": spec_path})

    def spec_save_failed(self, error: str, spec_path: Optional[str] = None) -> Dict[str, Any]:
        return self.log(
            EventType.SPEC_SAVE_FAILED,
            status="failed",
            error=error,
            details={"spec_path": spec_path} if spec_path else None,
        )

    def attempt_start(self, engine: str, index: int, command: str) -> Dict[str, Any]:
        return self.log(
            EventType.ATTEMPT_START,
            engine=engine,
            details={"index": index, "command": command},
        )

    def attempt_end(
        self,
        engine: str,
        outcome: str,
        exit_code: Optional[int],
        duration_ms: int,
        error: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.log(
            EventType.ATTEMPT_END,
            engine=engine,
            status=outcome,
            duration_ms=duration_ms,
            error=error,
            details={"exit_code": exit_code},
        )

    def engine_fallback(self, from_engine: str, to_engine: str, reason: str) -> Dict[str, Any]:
        """Log a switch to the next engine after an environment defect."""
        return self.log(
            EventType.ENGINE_FALLBACK,
            engine=to_engine,
            details={"from_engine": from_engine, "reason": reason},
        )

    def execution_end(self, status: str, attempts: int) -> Dict[str, Any]:
        return self.log(
            EventType.EXECUTION_END,
            status=status,
            details={"attempts": attempts},
        )

    def clone_start(self, repo_url: str) -> Dict[str, Any]:
        return self.log(EventType.CLONE_START, details={"repo_url": repo_url})

    def clone_complete(self, repo_url: str, local_path: str, duration_ms: int) -> Dict[str, Any]:
        return self.log(
            EventType.CLONE_COMPLETE,
            status="cloned",
            duration_ms=duration_ms,
            details={"repo_url": repo_url, "local_path": local_path},
        )

    def clone_failed(self, repo_url: str, error: str) -> Dict[str, Any]:
        return self.log(
            EventType.CLONE_FAILED,
            status="failed",
            error=error,
            details={"repo_url": repo_url},
        )

    def generation_start(self, role: str, model: Optional[str] = None) -> Dict[str, Any]:
        return self.log(
            EventType.GENERATION_START,
            details={"role": role, "model": model} if model else {"role": role},
        )

    def generation_complete(self, role: str, duration_ms: int) -> Dict[str, Any]:
        return self.log(
            EventType.GENERATION_COMPLETE,
            status="completed",
            duration_ms=duration_ms,
            details={"role": role},
        )

    def generation_failed(self, role: str, error: str, duration_ms: Optional[int] = None) -> Dict[str, Any]:
        return self.log(
            EventType.GENERATION_FAILED,
            status="failed",
            error=error,
            duration_ms=duration_ms,
            details={"role": role},
        )

    def read_events(self) -> list[Dict[str, Any]]:
        """Read all events from the timeline.

        Returns:
            List of event dictionaries.
        """
        events = []
        if self.timeline_path.exists():
            with self.timeline_path.open("r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        try:
                            events.append(json.loads(line))
                        except json.JSONDecodeError:
                            pass  # Skip malformed lines
        return events

    def get_events_by_type(self, event_type: EventType) -> list[Dict[str, Any]]:
        """Get all events of a specific type."""
        target = event_type.value if isinstance(event_type, EventType) else event_type
        return [e for e in self.read_events() if e.get("event") == target]


def create_timeline_logger(
    logs_dir: Path,
    run_id: Optional[str] = None,
) -> TimelineLogger:
    """Create a timeline logger writing into a logs directory.

    Args:
        logs_dir: Directory holding timeline.jsonl.
        run_id: Identifier to include in events.

    Returns:
        TimelineLogger instance.
    """
    return TimelineLogger(logs_dir / "timeline.jsonl", run_id=run_id)
