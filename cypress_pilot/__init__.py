"""cypress-pilot - Generate Cypress tests for a repository and run them headlessly."""

__all__ = [
    "__version__",
    "config",
    "timeline",
    "exec",
    "classify",
    "materialize",
    "attempt",
    "fallback",
    "report",
    "run",
    "launch",
    "agents",
    "services",
    "execute",
    "ExecutionResult",
    "ExecutionStatus",
]

__version__ = "0.1.0"

from cypress_pilot import config
from cypress_pilot import timeline
from cypress_pilot import exec
from cypress_pilot import classify
from cypress_pilot import materialize
from cypress_pilot import attempt
from cypress_pilot import fallback
from cypress_pilot import report
from cypress_pilot import run
from cypress_pilot import launch
from cypress_pilot import agents
from cypress_pilot import services
from cypress_pilot.run import execute
from cypress_pilot.report import ExecutionResult, ExecutionStatus
