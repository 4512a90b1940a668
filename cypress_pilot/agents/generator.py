"""Cypress test generation from a user flow description."""

from __future__ import annotations

import logging
import re
from typing import Optional, Union

from .claude import ClaudeRunner
from .prompts import AgentRole, TestType, build_test_generation_prompt


logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```[\w+-]*[ \t]*\n(.*?)\n?```\s*$", re.DOTALL)


class GenerationError(Exception):
    """Raised when the model produced no usable test code."""

    def __init__(self, message: str, exit_code: Optional[int] = None, output: str = ""):
        self.exit_code = exit_code
        self.output = output
        super().__init__(message)


def strip_code_fence(text: str) -> str:
    """Remove a single Markdown code fence wrapping the whole response."""
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip() + "\n"
    return text.strip() + "\n" if text.strip() else ""


class TestGenerator:
    """Produces Cypress test source with one model call."""
    __test__ = False  # not a pytest test class

    def __init__(
        self,
        claude: Optional[ClaudeRunner] = None,
        model: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.claude = claude or ClaudeRunner()
        self.model = model
        self.timeout = timeout

    def generate(
        self,
        flow_description: str,
        test_type: Union[TestType, str],
        application_details: str,
    ) -> str:
        """Return opaque Cypress test source for the flow.

        Raises:
            GenerationError: If the CLI fails or returns nothing.
            ValueError: If ``test_type`` is not E2E or Component.
        """
        test_type = TestType(test_type)
        prompt = build_test_generation_prompt(flow_description, test_type, application_details)
        result = self.claude.invoke(
            prompt,
            role=AgentRole.TEST_GENERATION.value,
            model=self.model,
            timeout=self.timeout,
        )

        if not result.success:
            detail = result.error or (result.stderr.strip() or f"exit code {result.exit_code}")
            raise GenerationError(
                f"Test generation failed: {detail}",
                exit_code=result.exit_code,
                output=result.truncated_output,
            )

        code = strip_code_fence(result.output)
        if not code:
            raise GenerationError("Test generation returned no code", exit_code=result.exit_code)

        logger.info("Generated %d characters of %s test code for %r", len(code), test_type.value, flow_description)
        return code


def generate_test(
    flow_description: str,
    test_type: Union[TestType, str],
    application_details: str,
    claude: Optional[ClaudeRunner] = None,
    model: Optional[str] = None,
) -> str:
    """Convenience wrapper around TestGenerator.generate."""
    return TestGenerator(claude=claude, model=model).generate(
        flow_description, test_type, application_details
    )
