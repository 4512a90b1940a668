"""Writing generated test source into a project's spec directory."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional, Union

from .config import DEFAULT_SPEC_DIR


logger = logging.getLogger(__name__)

SPEC_SUFFIX = ".cy.ts"


class MaterializeError(Exception):
    """Raised when the spec file cannot be written."""

    def __init__(self, message: str, spec_path: Optional[Path] = None):
        self.spec_path = spec_path
        super().__init__(message)


@dataclass(frozen=True)
class MaterializedSpec:
    """A spec file written to disk."""
    path: Path
    relative_path: str


def spec_file_name_for_flow(flow_name: str, suffix: str = SPEC_SUFFIX) -> str:
    """Turn a user flow name into a spec file name.

    >>> spec_file_name_for_flow("User Login")
    'user-login.cy.ts'
    """
    slug = re.sub(r"[^a-z0-9_.-]+", "-", flow_name.lower())
    slug = re.sub(r"-+", "-", slug)
    return slug + suffix


def resolve_spec_path(
    project_root: Path,
    file_name: str,
    spec_dir: str = DEFAULT_SPEC_DIR,
) -> MaterializedSpec:
    """Compute where a spec file goes without touching the disk.

    Raises:
        MaterializeError: If the name is empty or escapes the spec directory.
    """
    if not file_name or not file_name.strip():
        raise MaterializeError("Spec file name must not be empty")

    name = PurePosixPath(file_name.replace("\\", "/"))
    if name.is_absolute() or ".." in name.parts:
        raise MaterializeError(
            f"Spec file name must stay inside {spec_dir}: {file_name}"
        )

    spec_root = project_root / spec_dir
    spec_path = spec_root.joinpath(*name.parts)
    try:
        spec_path.resolve().relative_to(spec_root.resolve())
    except ValueError:
        raise MaterializeError(
            f"Spec file name must stay inside {spec_dir}: {file_name}"
        ) from None

    relative_path = str(PurePosixPath(spec_dir).joinpath(*name.parts))
    return MaterializedSpec(path=spec_path, relative_path=relative_path)


def materialize_spec(
    project_root: Union[str, Path],
    file_name: str,
    test_source: str,
    spec_dir: str = DEFAULT_SPEC_DIR,
) -> MaterializedSpec:
    """Write test source to ``<project_root>/<spec_dir>/<file_name>``.

    The spec directory is created when missing and an existing file is
    overwritten.

    Raises:
        MaterializeError: If the root is missing, the name is invalid, or
            any directory creation or write fails.
    """
    root = Path(project_root)
    if not root.is_dir():
        raise MaterializeError(f"Repository path does not exist: {root}")

    spec = resolve_spec_path(root, file_name, spec_dir)

    try:
        spec.path.parent.mkdir(parents=True, exist_ok=True)
        spec.path.write_text(test_source, encoding="utf-8")
    except OSError as e:
        raise MaterializeError(
            f"Failed to save test file at {spec.path}: {e}",
            spec_path=spec.path,
        ) from e

    logger.debug("Wrote %d characters to %s", len(test_source), spec.path)
    return spec
