"""User flow identification.

Clones a repository, summarizes its structure and asks the model which
user flows the application supports. On success the clone is kept so
generated specs can be run inside it; on any failure it is removed.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..agents.claude import ClaudeRunner
from ..agents.prompts import AgentRole, build_flow_identification_prompt
from ..config import PilotConfig, default_config
from .git_service import GitError, GitService
from .structure_service import StructureError, summarize_structure


logger = logging.getLogger(__name__)

# Suggestions offered when a repository yields no flows
MOCK_USER_FLOWS = [
    "User Login",
    "User Registration",
    "Create New Item",
    "View Item Details",
    "Edit Existing Item",
    "Delete Item",
    "User Profile Update",
    "Search Functionality",
    "User Logout",
]

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class FlowIdentificationError(Exception):
    """Raised when flows could not be identified; carries the analysis log."""

    def __init__(self, message: str, output: str = ""):
        self.output = output
        super().__init__(message)


@dataclass
class FlowAnalysis:
    """Result of analysing a repository for user flows."""
    flows: List[str] = field(default_factory=list)
    analysis_log: str = ""
    cloned_repo_path: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "identifiedFlows": list(self.flows),
            "analysisLog": self.analysis_log,
        }
        if self.cloned_repo_path is not None:
            data["clonedRepoPath"] = str(self.cloned_repo_path)
        return data


def parse_flows(output: str) -> tuple[List[str], str]:
    """Extract the flow list from a model response.

    Accepts ``{"identifiedFlows": [...]}`` (optionally wrapped in prose or
    a code fence), and tolerates a comma or newline separated string in
    place of the list. Returns the flows and any warning for the log.
    """
    match = _JSON_OBJECT_RE.search(output)
    if not match:
        return [], "Warning: model response contained no JSON object.\n"
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        return [], f"Warning: could not parse model response as JSON: {e}\n"

    flows = data.get("identifiedFlows") if isinstance(data, dict) else None
    if flows is None:
        return [], ""
    if isinstance(flows, str):
        parts = [s.strip() for s in re.split(r",|\n", flows)]
        return [p for p in parts if p], (
            "Warning: model returned non-array for identifiedFlows, attempting to adapt.\n"
        )
    if not isinstance(flows, list):
        return [], "Warning: model returned non-array for identifiedFlows, attempting to adapt.\n"
    return [str(f).strip() for f in flows if str(f).strip()], ""


class FlowService:
    """Identifies user flows in a remote repository."""

    def __init__(
        self,
        git_service: Optional[GitService] = None,
        claude: Optional[ClaudeRunner] = None,
        config: Optional[PilotConfig] = None,
    ):
        self.config = config or default_config()
        self.git_service = git_service or GitService(
            depth=self.config.clone.depth,
            temp_prefix=self.config.clone.temp_prefix,
            timeout=self.config.clone.timeout_seconds,
        )
        self.claude = claude or ClaudeRunner(default_timeout=self.config.generator.timeout_seconds)

    def identify_user_flows(self, repo_url: str, app_url: Optional[str] = None) -> FlowAnalysis:
        """Clone, summarize and ask the model for user flows.

        Raises:
            FlowIdentificationError: If any step fails. The clone has
                been removed by then.
        """
        log = ""
        local_path: Optional[Path] = None
        try:
            cloned = self.git_service.clone(repo_url)
            local_path = cloned.local_path
            log += cloned.log

            structure = summarize_structure(
                local_path,
                directories=self.config.structure.directories,
                max_items=self.config.structure.max_items,
            )
            log += structure.log

            prompt = build_flow_identification_prompt(repo_url, structure.summary, app_url=app_url)
            result = self.claude.invoke(
                prompt,
                role=AgentRole.FLOW_IDENTIFICATION.value,
                model=self.config.generator.model,
            )
            if not result.success:
                raise FlowIdentificationError(
                    f"Model invocation failed: {result.error or f'exit code {result.exit_code}'}"
                )
        except (GitError, StructureError, FlowIdentificationError, OSError) as e:
            log += f"Error in identifyUserFlows flow: {e}\n"
            if local_path is not None and self.git_service.cleanup(local_path):
                log += f"Cleaned up temporary directory due to error: {local_path}\n"
            logger.error("Flow identification for %s failed: %s", repo_url, e)
            raise FlowIdentificationError(
                f"Failed to identify user flows. Details: {e}. Log: {log}",
                output=log,
            ) from e

        if not result.output.strip():
            self.git_service.cleanup(local_path)
            log += f"Cleaned up temporary directory due to model returning no output: {local_path}\n"
            return FlowAnalysis(flows=[], analysis_log=log + "Model returned no output.")

        flows, warning = parse_flows(result.output)
        log += warning
        logger.info("Identified %d flow(s) in %s", len(flows), repo_url)
        return FlowAnalysis(flows=flows, analysis_log=log, cloned_repo_path=local_path)
