"""FastAPI REST API for cypress-pilot.

This module exposes the pipeline over HTTP:
- User flow identification for a repository
- Cypress test generation for a flow
- Headless execution (with browser fallback) and headed launch

All endpoints return JSON responses and use Pydantic models for validation.
Blocking work (git, model calls, Cypress) runs in worker threads.

Usage:
    from server.api import app
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, model_validator

from cypress_pilot import __version__
from cypress_pilot.agents.generator import GenerationError, TestGenerator
from cypress_pilot.agents.prompts import TestType
from cypress_pilot.config import PilotConfig, load_config
from cypress_pilot.launch import LaunchResult, launch_headed
from cypress_pilot.materialize import spec_file_name_for_flow
from cypress_pilot.report import ExecutionResult
from cypress_pilot.run import ExecutionRequest, HeadlessRunner
from cypress_pilot.services.flow_service import (
    MOCK_USER_FLOWS,
    FlowAnalysis,
    FlowIdentificationError,
    FlowService,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic models for request/response validation
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    error_code: Optional[str] = None


class IdentifyFlowsRequest(BaseModel):
    """Request to analyse a repository for user flows."""

    repo_url: str = Field(..., min_length=1, description="Repository URL to clone")
    app_url: Optional[str] = Field(None, description="Running application URL (context only)")


class FlowAnalysisResponse(BaseModel):
    """Identified flows and where the repository was cloned."""

    identified_flows: List[str]
    analysis_log: str = ""
    cloned_repo_path: Optional[str] = None

    @classmethod
    def from_analysis(cls, analysis: FlowAnalysis) -> "FlowAnalysisResponse":
        return cls(
            identified_flows=analysis.flows,
            analysis_log=analysis.analysis_log,
            cloned_repo_path=str(analysis.cloned_repo_path) if analysis.cloned_repo_path else None,
        )


class GenerateTestRequest(BaseModel):
    """Request to generate Cypress code for a flow."""

    flow_description: str = Field(..., min_length=1)
    test_type: TestType = TestType.E2E
    application_details: str = ""


class GenerateTestResponse(BaseModel):
    test_code: str


class SpecRequest(BaseModel):
    """Test code plus where to save it.

    Either ``spec_file_name`` or ``flow_name`` must be given; the file
    name is derived from the flow name when it is missing.
    """

    test_code: str
    repo_path: str = Field(..., min_length=1, description="Cypress project root")
    spec_file_name: Optional[str] = None
    flow_name: Optional[str] = None

    @model_validator(mode="after")
    def check_file_name(self) -> "SpecRequest":
        if not self.spec_file_name and not self.flow_name:
            raise ValueError("spec_file_name or flow_name is required")
        return self

    def resolved_file_name(self) -> str:
        return self.spec_file_name or spec_file_name_for_flow(self.flow_name or "")


class ExecutionResponse(BaseModel):
    """Result of a headless run."""

    status: str
    message: str
    spec_path: Optional[str] = None
    run_summary: Optional[str] = None
    detailed_log: Optional[str] = None
    attempts: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ExecutionResult) -> "ExecutionResponse":
        return cls(
            status=result.status.value,
            message=result.message,
            spec_path=str(result.spec_path) if result.spec_path else None,
            run_summary=result.run_summary,
            detailed_log=result.detailed_log,
            attempts=result.attempts,
        )


class LaunchResponse(BaseModel):
    """Result of a headed launch."""

    status: str
    message: str
    spec_path: Optional[str] = None
    detailed_error_log: Optional[str] = None

    @classmethod
    def from_result(cls, result: LaunchResult) -> "LaunchResponse":
        return cls(
            status=result.status.value,
            message=result.message,
            spec_path=str(result.spec_path) if result.spec_path else None,
            detailed_error_log=result.detailed_log,
        )


# =============================================================================
# Service instances (lazily created)
# =============================================================================


_config: Optional[PilotConfig] = None
_flow_service: Optional[FlowService] = None
_test_generator: Optional[TestGenerator] = None
_headless_runner: Optional[HeadlessRunner] = None


def get_config() -> PilotConfig:
    """Get or load the pilot configuration."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_flow_service() -> FlowService:
    """Get or create the flow service."""
    global _flow_service
    if _flow_service is None:
        _flow_service = FlowService(config=get_config())
    return _flow_service


def get_test_generator() -> TestGenerator:
    """Get or create the test generator."""
    global _test_generator
    if _test_generator is None:
        config = get_config()
        _test_generator = TestGenerator(
            model=config.generator.model,
            timeout=config.generator.timeout_seconds,
        )
    return _test_generator


def get_headless_runner() -> HeadlessRunner:
    """Get or create the headless runner."""
    global _headless_runner
    if _headless_runner is None:
        _headless_runner = HeadlessRunner(config=get_config())
    return _headless_runner


# =============================================================================
# FastAPI application
# =============================================================================


app = FastAPI(
    title="cypress-pilot API",
    description="Generate Cypress tests for a repository and run them",
    version=__version__,
)


# Configure CORS for localhost development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Flow endpoints
# =============================================================================


@app.post(
    "/api/flows/identify",
    response_model=FlowAnalysisResponse,
    responses={502: {"model": ErrorResponse}},
)
async def identify_flows(request: IdentifyFlowsRequest) -> FlowAnalysisResponse:
    """Clone a repository and ask the model for its user flows.

    The clone is kept on success; its path is returned so generated tests
    can be run inside it.
    """
    service = get_flow_service()
    try:
        analysis = await asyncio.to_thread(
            service.identify_user_flows, request.repo_url, request.app_url
        )
    except FlowIdentificationError as e:
        logger.warning("Flow identification failed for %s", request.repo_url)
        raise HTTPException(status_code=502, detail=str(e))
    return FlowAnalysisResponse.from_analysis(analysis)


@app.get("/api/flows/suggestions")
async def flow_suggestions() -> Dict[str, List[str]]:
    """Generic flows offered when a repository yields none."""
    return {"flows": list(MOCK_USER_FLOWS)}


# =============================================================================
# Test endpoints
# =============================================================================


@app.post(
    "/api/tests/generate",
    response_model=GenerateTestResponse,
    responses={502: {"model": ErrorResponse}},
)
async def generate_test(request: GenerateTestRequest) -> GenerateTestResponse:
    """Generate Cypress test code for one flow."""
    generator = get_test_generator()
    try:
        code = await asyncio.to_thread(
            generator.generate,
            request.flow_description,
            request.test_type,
            request.application_details,
        )
    except GenerationError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return GenerateTestResponse(test_code=code)


@app.post("/api/tests/run", response_model=ExecutionResponse)
async def run_test(request: SpecRequest) -> ExecutionResponse:
    """Save the spec and run it headlessly with browser fallback.

    Always answers 200; the outcome is in ``status``.
    """
    runner = get_headless_runner()
    execution_request = ExecutionRequest(
        test_source=request.test_code,
        project_root=Path(request.repo_path),
        file_name=request.resolved_file_name(),
    )
    result = await asyncio.to_thread(runner.execute, execution_request)
    return ExecutionResponse.from_result(result)


@app.post("/api/tests/launch", response_model=LaunchResponse)
async def launch_test(request: SpecRequest) -> LaunchResponse:
    """Save the spec and start a headed run."""
    result = await asyncio.to_thread(
        launch_headed,
        request.test_code,
        Path(request.repo_path),
        request.resolved_file_name(),
        get_config(),
    )
    return LaunchResponse.from_result(result)


# =============================================================================
# Health check
# =============================================================================


@app.get("/api/health")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint.

    Returns:
        Service status, version and the configured engine order.
    """
    config = get_config()
    return {
        "status": "healthy",
        "version": __version__,
        "engines": list(config.runner.engines),
    }
