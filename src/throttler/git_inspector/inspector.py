"""GitInspector - Inspects instance working copies with the git CLI."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from throttler.git_inspector.exceptions import GitCommandError, GitTimeoutError
from throttler.logging import truncate_output

logger = logging.getLogger("throttler.git_inspector")


class GitInspector:
    """Resolves branches and upstream revisions of local working copies.

    Every call blocks on a git subprocess and is bounded by ``timeout``.
    """

    def __init__(self, timeout: float = 120.0, git_binary: str = "git") -> None:
        """Initialize Git Inspector.

        Args:
            timeout: Seconds a single git command may run
            git_binary: Name or path of the git executable
        """
        self.timeout = timeout
        self.git_binary = git_binary

    def _run_git(self, repo_path: str | Path, *args: str) -> str:
        """Run a git command in a working copy.

        Args:
            repo_path: Working copy to run in
            *args: Git command arguments

        Returns:
            Command stdout

        Raises:
            GitCommandError: If the command fails or the path is not usable
            GitTimeoutError: If the command exceeds the timeout
        """
        command = [self.git_binary, *args]
        try:
            result = subprocess.run(
                command,
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise GitTimeoutError(
                f"'git {' '.join(args)}' in {repo_path} timed out after {self.timeout}s"
            ) from e
        except subprocess.CalledProcessError as e:
            stderr = truncate_output((e.stderr or "").strip())
            raise GitCommandError(f"'git {' '.join(args)}' in {repo_path} failed: {stderr}") from e
        except OSError as e:
            raise GitCommandError(f"Cannot run git in {repo_path}: {e}") from e
        return result.stdout.strip()

    def current_branch(self, repo_path: str | Path) -> str:
        """Get the name of the checked out branch.

        Raises:
            GitCommandError: If HEAD is detached or git fails
        """
        branch = self._run_git(repo_path, "rev-parse", "--abbrev-ref", "HEAD")
        if branch == "HEAD":
            raise GitCommandError(f"{repo_path} has a detached HEAD")
        return branch

    def upstream_ref(self, repo_path: str | Path) -> str:
        """Get the upstream ref tracked by the checked out branch (e.g. "origin/master")."""
        return self._run_git(
            repo_path, "rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}"
        )

    def latest_upstream_revision(self, repo_path: str | Path) -> str:
        """Fetch the tracked upstream branch and resolve it to a commit SHA.

        Performs a shallow fetch of only the upstream branch, without
        submodules, so the call stays cheap on large repositories.

        Args:
            repo_path: Working copy to inspect

        Returns:
            Commit SHA the upstream branch points to after the fetch

        Raises:
            GitCommandError: If there is no upstream or git fails
            GitTimeoutError: If the fetch exceeds the timeout
        """
        upstream = self.upstream_ref(repo_path)
        remote, sep, branch = upstream.partition("/")
        if not sep or not branch:
            raise GitCommandError(f"Unexpected upstream ref '{upstream}' in {repo_path}")

        logger.debug("Fetching %s %s in %s", remote, branch, repo_path)
        self._run_git(
            repo_path, "fetch", "-q", "--recurse-submodules=no", "--depth=1", remote, branch
        )
        return self._run_git(repo_path, "rev-parse", upstream)
