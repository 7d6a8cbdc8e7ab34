"""RevisionOracle - Last deployed and latest upstream revisions of instances."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from throttler.git_inspector import GitInspectorError
from throttler.scheduler.exceptions import OracleError
from throttler.state_store import StateStoreError

if TYPE_CHECKING:
    from throttler.git_inspector import GitInspector
    from throttler.state_store import StateStore


class RevisionOracle:
    """Answers the two revision questions the throttler asks per instance.

    The last successful revision comes from the orchestrator's job history,
    the latest upstream revision from the instance's working copy, which
    lives in ``repository_dir`` below the instance path.
    """

    def __init__(
        self,
        state_store: StateStore,
        git_inspector: GitInspector,
        repository_dir: str = "Repository",
    ) -> None:
        self.state_store = state_store
        self.git_inspector = git_inspector
        self.repository_dir = repository_dir

    def repository_path(self, instance_path: str) -> Path:
        """Working copy location for an instance."""
        return Path(instance_path) / self.repository_dir

    def last_successful_revision(self, instance_id: int) -> str | None:
        """Commit SHA of the instance's last successful deployment, if any.

        Raises:
            OracleError: If the job history cannot be read
        """
        try:
            return self.state_store.get_last_successful_revision(instance_id)
        except StateStoreError as e:
            raise OracleError(str(e)) from e

    def latest_upstream_revision(self, instance_path: str) -> str:
        """Commit SHA at the head of the instance's tracked upstream branch.

        Fetches from the remote, so this is slow and may fail on network errors.

        Raises:
            OracleError: If the fetch or resolution fails
        """
        try:
            return self.git_inspector.latest_upstream_revision(self.repository_path(instance_path))
        except GitInspectorError as e:
            raise OracleError(str(e)) from e

    def current_branch(self, instance_path: str) -> str:
        """Name of the branch checked out in the instance's working copy.

        Raises:
            OracleError: If the branch cannot be resolved
        """
        try:
            return self.git_inspector.current_branch(self.repository_path(instance_path))
        except GitInspectorError as e:
            raise OracleError(str(e)) from e
