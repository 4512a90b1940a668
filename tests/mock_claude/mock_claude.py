#!/usr/bin/env python3
"""
Mock Claude CLI for cypress-pilot testing.

Simulates the Claude CLI without real API calls. The response depends on
the prompt: flow identification prompts (asking for "identifiedFlows")
get a JSON object, test generation prompts get fenced Cypress code.

Usage:
    CYPRESS_PILOT_CLAUDE_CMD="python tests/mock_claude/mock_claude.py" cypress-pilot generate ...

Environment Variables:
    MOCK_CLAUDE_SCENARIO: default, fail, empty, flows_string, prose, timeout
    MOCK_CLAUDE_FLOWS: Comma-separated flows returned for identification
    MOCK_DELAY: Artificial delay in seconds

Exit codes:
    0 - Success (response written to stdout)
    1 - Simulated failure
"""

import argparse
import json
import os
import re
import sys
import time
from typing import List


DEFAULT_FLOWS = ["User Login", "View Dashboard", "Update Profile Settings"]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mock Claude CLI")
    parser.add_argument("-p", "--prompt", required=False, help="Prompt text")
    parser.add_argument("-m", "--model", default="mock-model", help="Model name")
    parser.add_argument("--print", action="store_true", help="Print mode")
    args, _ = parser.parse_known_args()
    return args


def configured_flows() -> List[str]:
    raw = os.environ.get("MOCK_CLAUDE_FLOWS")
    if not raw:
        return list(DEFAULT_FLOWS)
    return [f.strip() for f in raw.split(",") if f.strip()]


def flow_response(scenario: str) -> str:
    flows = configured_flows()
    if scenario == "flows_string":
        return json.dumps({"identifiedFlows": ", ".join(flows)})
    body = json.dumps({"identifiedFlows": flows}, indent=2)
    if scenario == "prose":
        return f"Here are the flows I found:\n```json\n{body}\n```\n"
    return body


def test_response(prompt: str) -> str:
    match = re.search(r"User Flow Description: (.+)", prompt)
    flow = match.group(1).strip() if match else "Unknown flow"
    return (
        "```typescript\n"
        f"describe('{flow}', () => {{\n"
        "  it('works', () => {\n"
        "    cy.visit('/');\n"
        "    cy.get('body').should('be.visible');\n"
        "  });\n"
        "});\n"
        "```\n"
    )


def main() -> int:
    args = parse_args()
    scenario = os.environ.get("MOCK_CLAUDE_SCENARIO", "default")
    delay = float(os.environ.get("MOCK_DELAY", "0"))
    if delay:
        time.sleep(delay)

    if scenario == "fail":
        print("Error: simulated API failure", file=sys.stderr)
        return 1
    if scenario == "empty":
        return 0
    if scenario == "timeout":
        time.sleep(60)
        return 0

    prompt = args.prompt or ""
    if "identifiedFlows" in prompt:
        print(flow_response(scenario))
    else:
        print(test_response(prompt), end="")
    return 0


if __name__ == "__main__":
    sys.exit(main())
