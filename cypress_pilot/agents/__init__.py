"""Agent modules for cypress-pilot.

This package contains:
- prompts: Prompt templates for the model-backed roles
- claude: Claude CLI invocation wrapper
- generator: Cypress test generation
"""

from .prompts import (
    build_test_generation_prompt,
    build_flow_identification_prompt,
    AgentRole,
    TestType,
)
from .claude import ClaudeRunner, ClaudeResult
from .generator import TestGenerator, GenerationError, generate_test, strip_code_fence

__all__ = [
    "build_test_generation_prompt",
    "build_flow_identification_prompt",
    "AgentRole",
    "TestType",
    "ClaudeRunner",
    "ClaudeResult",
    "TestGenerator",
    "GenerationError",
    "generate_test",
    "strip_code_fence",
]
