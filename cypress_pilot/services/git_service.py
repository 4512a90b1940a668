"""Git operations service.

Clones target repositories into fresh temporary directories. A failed
clone never leaves its temporary directory behind: it is removed before
the error propagates, and the error carries the diagnostic log.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..exec import run_command
from ..timeline import TimelineLogger


logger = logging.getLogger(__name__)


class GitError(Exception):
    """Raised when a git operation fails."""

    def __init__(self, message: str, exit_code: Optional[int] = 1, output: str = ""):
        self.exit_code = exit_code
        self.output = output
        super().__init__(message)


@dataclass
class CloneResult:
    """A repository cloned to local disk."""
    local_path: Path
    log: str


class GitService:
    """Service for git operations.

    Usage:
        service = GitService()
        cloned = service.clone("https://github.com/org/app")
        ...
        service.cleanup(cloned.local_path)
    """

    def __init__(
        self,
        git_cmd: str = "git",
        depth: int = 1,
        temp_prefix: str = "cypress-pilot-repo-",
        timeout: int = 300,
        timeline: Optional[TimelineLogger] = None,
    ):
        """Initialize the git service.

        Args:
            git_cmd: Path or name of the git executable.
            depth: History depth for clones.
            temp_prefix: Prefix of the temporary clone directories.
            timeout: Timeout for git operations in seconds.
            timeline: Timeline logger for events.
        """
        self.git_cmd = git_cmd
        self.depth = depth
        self.temp_prefix = temp_prefix
        self.timeout = timeout
        self.timeline = timeline

    def _clone_args(self, repo_url: str) -> List[str]:
        return [self.git_cmd, "clone", "--depth", str(self.depth), repo_url, "."]

    def clone(self, repo_url: str) -> CloneResult:
        """Clone a repository into a new temporary directory.

        Args:
            repo_url: URL (or local path) of the repository.

        Returns:
            CloneResult with the local path and a progress log.

        Raises:
            GitError: If the clone fails. The temporary directory has
                already been removed and ``output`` holds the log.
        """
        log = f"Attempting to clone {repo_url}...\n"
        temp_dir: Optional[Path] = None
        start_time = time.time()

        if self.timeline:
            self.timeline.clone_start(repo_url)

        try:
            temp_dir = Path(tempfile.mkdtemp(prefix=self.temp_prefix))
            log += f"Created temporary directory: {temp_dir}\n"

            result = run_command(self._clone_args(repo_url), cwd=temp_dir, timeout=self.timeout)
            if not result.success:
                detail = result.error or result.stderr.strip() or result.stdout.strip()
                raise GitError(
                    f"git clone exited with code {result.exit_code}: {detail}",
                    exit_code=result.exit_code,
                )

            log += f"Successfully cloned {repo_url} into {temp_dir}\n"
        except (GitError, OSError) as e:
            log += f"Error cloning repository: {e}\n"
            if temp_dir is not None and temp_dir.exists():
                shutil.rmtree(temp_dir, ignore_errors=True)
                log += f"Cleaned up temporary directory: {temp_dir}\n"
            if self.timeline:
                self.timeline.clone_failed(repo_url, str(e))
            logger.error("Clone of %s failed: %s", repo_url, e)
            raise GitError(
                f"Failed to clone repository: {e}. Log: {log}",
                exit_code=getattr(e, "exit_code", 1),
                output=log,
            ) from e

        duration_ms = int((time.time() - start_time) * 1000)
        if self.timeline:
            self.timeline.clone_complete(repo_url, str(temp_dir), duration_ms)
        logger.info("Cloned %s into %s", repo_url, temp_dir)
        return CloneResult(local_path=temp_dir, log=log)

    def cleanup(self, local_path: Path) -> bool:
        """Remove a cloned repository. Returns True if something was removed."""
        path = Path(local_path)
        if not path.exists():
            return False
        shutil.rmtree(path, ignore_errors=True)
        logger.debug("Removed %s", path)
        return True
