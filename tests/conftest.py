"""
Shared test fixtures for cypress-pilot tests.

This module provides pytest fixtures for unit and integration tests,
including:
- Mock Claude CLI configuration
- Mock Cypress runner configuration
- Temporary Cypress project setup
- Common test utilities
"""

import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List

import pytest

# Ensure mock Claude is used by default in tests
MOCK_CLAUDE_PATH = Path(__file__).parent / "mock_claude" / "mock_claude.py"
os.environ.setdefault("CYPRESS_PILOT_CLAUDE_CMD", f"{sys.executable} {MOCK_CLAUDE_PATH}")

MOCK_CYPRESS_PATH = Path(__file__).parent / "mock_cypress" / "mock_cypress.py"

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from cypress_pilot.config import PilotConfig, RunnerConfig  # noqa: E402


# =============================================================================
# Session-scoped fixtures (created once per test session)
# =============================================================================

@pytest.fixture(scope="session")
def mock_claude_path() -> Path:
    """Return path to mock Claude executable."""
    return MOCK_CLAUDE_PATH


@pytest.fixture(scope="session")
def mock_cypress_path() -> Path:
    """Return path to mock Cypress executable."""
    return MOCK_CYPRESS_PATH


# =============================================================================
# Function-scoped fixtures (created fresh for each test)
# =============================================================================

@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host configuration and mock scenarios out of tests."""
    monkeypatch.delenv("CYPRESS_PILOT_CONFIG", raising=False)
    for key in list(os.environ):
        if key.startswith("MOCK_CYPRESS_SCENARIO") or key.startswith("MOCK_CLAUDE_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test use.

    The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def project_root(temp_dir: Path) -> Path:
    """A minimal Cypress project without a spec directory."""
    root = temp_dir / "app"
    root.mkdir()
    (root / "package.json").write_text(
        json.dumps({"name": "demo-app", "devDependencies": {"cypress": "^13.0.0"}}),
        encoding="utf-8",
    )
    (root / "cypress.config.ts").write_text("export default {}\n", encoding="utf-8")
    return root


@pytest.fixture
def calls_file(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """File where the mock Cypress records each invocation."""
    path = temp_dir / "cypress-calls.jsonl"
    monkeypatch.setenv("MOCK_CYPRESS_CALLS", str(path))
    return path


@pytest.fixture
def read_calls(calls_file: Path) -> Callable[[], List[Dict[str, Any]]]:
    """Return a function reading the recorded mock Cypress invocations."""
    def _read() -> List[Dict[str, Any]]:
        if not calls_file.exists():
            return []
        lines = calls_file.read_text(encoding="utf-8").splitlines()
        return [json.loads(line) for line in lines if line.strip()]
    return _read


@pytest.fixture
def scenario(monkeypatch: pytest.MonkeyPatch) -> Callable[..., None]:
    """Select mock Cypress behavior.

    Usage:
        scenario("pass")                   # every engine
        scenario(chrome="xvfb", firefox="pass")
    """
    def _set(default: str = None, **per_engine: str) -> None:
        if default is not None:
            monkeypatch.setenv("MOCK_CYPRESS_SCENARIO", default)
        for engine, name in per_engine.items():
            monkeypatch.setenv(f"MOCK_CYPRESS_SCENARIO_{engine.upper()}", name)
    return _set


@pytest.fixture
def pilot_config(calls_file: Path) -> PilotConfig:
    """Configuration pointing the runner at the mock Cypress."""
    return PilotConfig(
        runner=RunnerConfig(
            command=[sys.executable, str(MOCK_CYPRESS_PATH)],
            timeout_seconds=60,
            launch_window_seconds=2.0,
        )
    )
