"""Unit tests for RevisionOracle."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from throttler.git_inspector import GitCommandError, GitTimeoutError
from throttler.scheduler import OracleError, RevisionOracle
from throttler.state_store import StateStoreQueryError


@pytest.fixture
def mock_state_store() -> MagicMock:
    """Create a mock StateStore."""
    return MagicMock()


@pytest.fixture
def mock_git() -> MagicMock:
    """Create a mock GitInspector."""
    return MagicMock()


@pytest.fixture
def oracle(mock_state_store: MagicMock, mock_git: MagicMock) -> RevisionOracle:
    """Create a RevisionOracle with mocked collaborators."""
    return RevisionOracle(mock_state_store, mock_git)


@pytest.mark.unit
class TestLastSuccessfulRevision:
    """Tests for last_successful_revision."""

    def test_returns_store_value(self, oracle: RevisionOracle, mock_state_store: MagicMock) -> None:
        """Delegates to the job history query."""
        mock_state_store.get_last_successful_revision.return_value = "abc123"

        assert oracle.last_successful_revision(4) == "abc123"
        mock_state_store.get_last_successful_revision.assert_called_once_with(4)

    def test_absent_revision(self, oracle: RevisionOracle, mock_state_store: MagicMock) -> None:
        """None when the instance never deployed successfully."""
        mock_state_store.get_last_successful_revision.return_value = None

        assert oracle.last_successful_revision(4) is None

    def test_store_error_wrapped(self, oracle: RevisionOracle, mock_state_store: MagicMock) -> None:
        """Query failures surface as OracleError."""
        mock_state_store.get_last_successful_revision.side_effect = StateStoreQueryError("gone")

        with pytest.raises(OracleError, match="gone"):
            oracle.last_successful_revision(4)


@pytest.mark.unit
class TestLatestUpstreamRevision:
    """Tests for latest_upstream_revision."""

    def test_inspects_repository_subdirectory(
        self, oracle: RevisionOracle, mock_git: MagicMock
    ) -> None:
        """Working copy is the Repository directory of the instance."""
        mock_git.latest_upstream_revision.return_value = "def456"

        assert oracle.latest_upstream_revision("/srv/tgs/main") == "def456"
        mock_git.latest_upstream_revision.assert_called_once_with(
            Path("/srv/tgs/main/Repository")
        )

    def test_custom_repository_dir(self, mock_state_store: MagicMock, mock_git: MagicMock) -> None:
        """Repository directory name is configurable."""
        oracle = RevisionOracle(mock_state_store, mock_git, repository_dir="repo")

        oracle.latest_upstream_revision("/srv/x")

        mock_git.latest_upstream_revision.assert_called_once_with(Path("/srv/x/repo"))

    @pytest.mark.parametrize("error", [GitCommandError("no upstream"), GitTimeoutError("slow")])
    def test_git_error_wrapped(
        self, oracle: RevisionOracle, mock_git: MagicMock, error: Exception
    ) -> None:
        """Fetch failures and timeouts surface as OracleError."""
        mock_git.latest_upstream_revision.side_effect = error

        with pytest.raises(OracleError):
            oracle.latest_upstream_revision("/srv/x")


@pytest.mark.unit
class TestCurrentBranch:
    """Tests for current_branch."""

    def test_current_branch(self, oracle: RevisionOracle, mock_git: MagicMock) -> None:
        """Delegates to the git inspector."""
        mock_git.current_branch.return_value = "master"

        assert oracle.current_branch("/srv/x") == "master"
        mock_git.current_branch.assert_called_once_with(Path("/srv/x/Repository"))

    def test_detached_head(self, oracle: RevisionOracle, mock_git: MagicMock) -> None:
        """A detached HEAD is reported as OracleError."""
        mock_git.current_branch.side_effect = GitCommandError("detached HEAD")

        with pytest.raises(OracleError, match="detached"):
            oracle.current_branch("/srv/x")
