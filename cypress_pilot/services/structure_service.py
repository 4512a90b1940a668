"""Repository structure summaries.

Produces a short text description of a cloned repository: the
package.json highlights plus the contents of conventional framework and
test directories. The listing is capped so the summary stays small
enough to embed in a prompt.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..config import DEFAULT_STRUCTURE_DIRS


logger = logging.getLogger(__name__)

KEY_DEPENDENCIES = ("next", "react", "vue", "angular", "@sveltejs/kit", "cypress")
KEY_DEV_DEPENDENCIES = ("cypress",)
MORE_ITEMS_LINE = "  ... (and more files/subdirectories)\n"


class StructureError(Exception):
    """Raised when the repository cannot be read."""

    def __init__(self, message: str, output: str = ""):
        self.output = output
        super().__init__(message)


@dataclass
class StructureSummary:
    summary: str
    log: str


def _describe_entry(entry: Path) -> str:
    return f"  - {entry.name}{'/' if entry.is_dir() else ''}\n"


def _sorted_entries(directory: Path) -> List[Path]:
    return sorted(directory.iterdir(), key=lambda p: p.name)


def _describe_package_json(package_json: Path) -> tuple[str, str]:
    """Summary text and log text for a package.json file."""
    text = "\nFound package.json. Dependencies might indicate framework (e.g., 'next', 'react', 'vue', 'angular').\n"
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        return (
            text + f"Could not parse package.json: {e}\n",
            f"Warning: Could not parse package.json: {e}\n",
        )

    text += f"Package name: {data.get('name') or 'N/A'}\n"
    dependencies = data.get("dependencies")
    if isinstance(dependencies, dict):
        keys = [k for k in dependencies if k in KEY_DEPENDENCIES]
        text += "Key dependencies: " + ", ".join(keys) + "\n"
    dev_dependencies = data.get("devDependencies")
    if isinstance(dev_dependencies, dict):
        keys = [k for k in dev_dependencies if k in KEY_DEV_DEPENDENCIES]
        text += "Key devDependencies: " + ", ".join(keys) + "\n"
    return text, ""


def summarize_structure(
    repo_path: Path,
    directories: Optional[Sequence[str]] = None,
    max_items: int = 30,
) -> StructureSummary:
    """Summarize the layout of a repository.

    Args:
        repo_path: Root of the cloned repository.
        directories: Conventional directories to list, relative to the root.
        max_items: Maximum number of entries listed across all directories.

    Returns:
        StructureSummary with summary text and a progress log.

    Raises:
        StructureError: If the root directory cannot be listed.
    """
    repo_path = Path(repo_path)
    if directories is None:
        directories = DEFAULT_STRUCTURE_DIRS

    summary = f"Repository structure analysis for path: {repo_path}\n"
    log = f"Analyzing structure at {repo_path}...\n"

    try:
        root_entries = _sorted_entries(repo_path)
    except OSError as e:
        log += f"Error reading repository structure: {e}\n"
        raise StructureError(
            f"Failed to read repository structure: {e}. Log: {log}",
            output=log,
        ) from e

    package_json = repo_path / "package.json"
    if package_json.is_file():
        text, warning = _describe_package_json(package_json)
        summary += text
        log += warning
    else:
        summary += "No package.json found at root.\n"

    listed = 0
    found_any = False
    for directory in directories:
        full_path = repo_path / directory
        if not full_path.is_dir():
            continue
        found_any = True
        summary += f"\nDirectory: /{directory}\n"
        try:
            entries = _sorted_entries(full_path)
        except OSError as e:
            summary += f"  (unreadable: {e})\n"
            continue
        shown = entries[:max(max_items - listed, 0)]
        summary += "".join(_describe_entry(e) for e in shown)
        listed += len(shown)
        if len(entries) > len(shown):
            summary += MORE_ITEMS_LINE

    if not found_any:
        summary += "\nNo common framework or test directories found. Listing root items:\n"
        summary += "".join(_describe_entry(e) for e in root_entries[:max_items])
        if len(root_entries) > max_items:
            summary += MORE_ITEMS_LINE

    log += "Structure analysis complete. Summary generated.\n"
    logger.debug("Summarized %s (%d entries listed)", repo_path, listed)
    return StructureSummary(summary=summary, log=log)
