"""Prompt templates for cypress-pilot.

Provides prompt builders for the two model-backed roles:
- Test generation: Cypress code for one user flow
- Flow identification: candidate user flows from a repository summary
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class AgentRole(str, Enum):
    """Roles the model is invoked for."""
    TEST_GENERATION = "test_generation"
    FLOW_IDENTIFICATION = "flow_identification"


class TestType(str, Enum):
    """Kinds of Cypress test that can be generated."""
    __test__ = False  # not a pytest test class

    E2E = "E2E"
    COMPONENT = "Component"


def build_test_generation_prompt(
    flow_description: str,
    test_type: TestType,
    application_details: str,
) -> str:
    """Build prompt asking for Cypress code covering one user flow.

    Args:
        flow_description: The user flow to test, e.g. "User Login".
        test_type: E2E or Component.
        application_details: App URL and repository link.

    Returns:
        Complete prompt string.
    """
    return f"""You are an expert Cypress test generator. Based on the provided user flow description, generate Cypress test code.

User Flow Description: {flow_description}
Test Type: {TestType(test_type).value}
Application Details: {application_details}

Ensure the generated code is valid Cypress code and includes appropriate assertions to validate the user flow.
Return only the code, do not include explanations or comments outside of the test code.
"""


def build_flow_identification_prompt(
    repo_url: str,
    analyzed_structure: str,
    app_url: Optional[str] = None,
) -> str:
    """Build prompt asking for the user flows an application supports."""
    app_line = f"Application URL (for context): {app_url}\n" if app_url else ""
    return f"""You are an expert software analyst. Based on the provided repository structure analysis and optionally the application URL, identify and list potential user flows.
Focus on sequences of actions a user might take.

Repository URL (for context): {repo_url}
{app_line}
Analyzed Repository Structure:
{analyzed_structure}

List the identified user flows. For example: "User Login", "Create New Product", "View Dashboard", "Update Profile Settings".
Return *only* the list of identified user flows as a JSON object of this shape:
{{
  "identifiedFlows": ["User Login", "View Dashboard"]
}}
"""
