"""Services package for cypress-pilot.

CLI-agnostic collaborators shared by the command line and the REST API.

Services:
- GitService: Repository cloning into temporary directories
- summarize_structure: Short textual summary of a repository layout
- FlowService: User flow identification (clone, summarize, ask the model)
"""

from .git_service import GitService, GitError, CloneResult
from .structure_service import StructureSummary, StructureError, summarize_structure
from .flow_service import (
    FlowService,
    FlowAnalysis,
    FlowIdentificationError,
    MOCK_USER_FLOWS,
    parse_flows,
)

__all__ = [
    # GitService
    "GitService",
    "GitError",
    "CloneResult",
    # Structure
    "StructureSummary",
    "StructureError",
    "summarize_structure",
    # FlowService
    "FlowService",
    "FlowAnalysis",
    "FlowIdentificationError",
    "MOCK_USER_FLOWS",
    "parse_flows",
]
