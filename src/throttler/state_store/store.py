"""StateStore - Read-only queries against the orchestrator's database."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from throttler.state_store.database import Database
from throttler.state_store.exceptions import StateStoreQueryError
from throttler.state_store.models import (
    CompileJob,
    Instance,
    Job,
    RevisionInformation,
)

if TYPE_CHECKING:
    from sqlalchemy import URL


class StateStore:
    """Main API for State Store operations.

    Provides the three reads the throttler needs: online instances, active
    compile jobs, and the last successfully deployed revision per instance.
    """

    def __init__(self, url: str | URL = "sqlite:///:memory:") -> None:
        """Initialize State Store.

        Args:
            url: SQLAlchemy URL of the orchestrator database
        """
        self._db = Database(url)

    @property
    def database(self) -> Database:
        """The underlying connection manager."""
        return self._db

    def ping(self) -> None:
        """Verify the database is reachable.

        Raises:
            StateStoreConnectionError: If the database cannot be reached
        """
        self._db.ping()

    def close(self) -> None:
        """Close the database connection."""
        self._db.close()

    def list_online_instances(self) -> list[Instance]:
        """List all instances currently marked online.

        Returns:
            Online instances, ordered by ID

        Raises:
            StateStoreQueryError: If the query fails
        """
        session = self._db.get_session()
        try:
            stmt = select(Instance).where(Instance.online.is_(True)).order_by(Instance.id)
            return list(session.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            raise StateStoreQueryError(f"Failed to list online instances: {e}") from e
        finally:
            session.close()

    def list_active_compile_jobs(self, started_by_id: int, description: str) -> list[Job]:
        """List compile jobs that have not stopped yet.

        The orchestrator has no structured job type, so compile jobs are
        matched on their exact description string.

        Args:
            started_by_id: Only jobs started by this user are considered
            description: Exact job description identifying compile jobs

        Returns:
            Active jobs, ordered by ID

        Raises:
            StateStoreQueryError: If the query fails
        """
        session = self._db.get_session()
        try:
            stmt = (
                select(Job)
                .where(
                    Job.description == description,
                    Job.stopped_at.is_(None),
                    Job.started_by_id == started_by_id,
                )
                .order_by(Job.id)
            )
            return list(session.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            raise StateStoreQueryError(f"Failed to list active compile jobs: {e}") from e
        finally:
            session.close()

    def get_last_successful_revision(self, instance_id: int) -> str | None:
        """Get the commit SHA of the last successful deployment.

        A deployment counts as successful when its job was not cancelled,
        has stopped, and carries no error code. The job with the highest ID,
        the most recently created one, wins.

        Args:
            instance_id: The instance's ID

        Returns:
            The commit SHA, or None if the instance never deployed successfully

        Raises:
            StateStoreQueryError: If the query fails
        """
        session = self._db.get_session()
        try:
            stmt = (
                select(RevisionInformation.commit_sha)
                .select_from(Job)
                .join(CompileJob, CompileJob.job_id == Job.id)
                .join(
                    RevisionInformation,
                    RevisionInformation.id == CompileJob.revision_information_id,
                )
                .where(
                    Job.instance_id == instance_id,
                    Job.cancelled.is_(False),
                    Job.stopped_at.is_not(None),
                    Job.error_code.is_(None),
                )
                .order_by(Job.id.desc())
                .limit(1)
            )
            return session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StateStoreQueryError(
                f"Failed to get last successful revision for instance {instance_id}: {e}"
            ) from e
        finally:
            session.close()
