"""Server package for cypress-pilot.

This package contains the REST API that exposes flow identification,
test generation and test execution over HTTP.
"""

from .api import (
    # FastAPI application
    app,
    # Request/response models
    IdentifyFlowsRequest,
    FlowAnalysisResponse,
    GenerateTestRequest,
    GenerateTestResponse,
    SpecRequest,
    ExecutionResponse,
    LaunchResponse,
)

__all__ = [
    "app",
    "IdentifyFlowsRequest",
    "FlowAnalysisResponse",
    "GenerateTestRequest",
    "GenerateTestResponse",
    "SpecRequest",
    "ExecutionResponse",
    "LaunchResponse",
]
