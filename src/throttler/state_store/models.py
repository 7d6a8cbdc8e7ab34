"""SQLAlchemy models for the orchestrator's state database.

The schema is owned by tgstation-server; these mappings cover only the
tables and columns the throttler reads. Column names follow the external
PascalCase convention.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - used at runtime for SQLAlchemy

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)

# SQLite only autoincrements INTEGER primary keys
_Id = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Instance(Base):
    """Instance model - one deployable game server."""

    __tablename__ = "Instances"

    id: Mapped[int] = mapped_column("Id", _Id, primary_key=True)
    name: Mapped[str] = mapped_column("Name", String(100), nullable=False)
    path: Mapped[str] = mapped_column("Path", String(500), nullable=False)
    online: Mapped[bool] = mapped_column("Online", Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Instance(id={self.id!r}, name={self.name!r}, online={self.online!r})>"


class Job(Base):
    """Job model - any background job the orchestrator has run for an instance."""

    __tablename__ = "Jobs"

    id: Mapped[int] = mapped_column("Id", _Id, primary_key=True)
    instance_id: Mapped[int] = mapped_column(
        "InstanceId", _Id, ForeignKey("Instances.Id"), nullable=False
    )
    description: Mapped[str] = mapped_column("Description", String(500), nullable=False)
    started_by_id: Mapped[int] = mapped_column("StartedById", _Id, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column("StartedAt", DateTime, nullable=True)
    stopped_at: Mapped[datetime | None] = mapped_column("StoppedAt", DateTime, nullable=True)
    cancelled: Mapped[bool] = mapped_column("Cancelled", Boolean, nullable=False, default=False)
    error_code: Mapped[int | None] = mapped_column("ErrorCode", Integer, nullable=True)

    compile_job: Mapped[CompileJob | None] = relationship("CompileJob", back_populates="job")

    @property
    def is_active(self) -> bool:
        """Whether the job is still running."""
        return self.stopped_at is None

    def __repr__(self) -> str:
        return (
            f"<Job(id={self.id!r}, instance_id={self.instance_id!r}, "
            f"description={self.description!r}, stopped_at={self.stopped_at!r})>"
        )


class RevisionInformation(Base):
    """Revision information model - a commit an instance's repository was at."""

    __tablename__ = "RevisionInformations"

    id: Mapped[int] = mapped_column("Id", _Id, primary_key=True)
    instance_id: Mapped[int] = mapped_column(
        "InstanceId", _Id, ForeignKey("Instances.Id"), nullable=False
    )
    commit_sha: Mapped[str] = mapped_column("CommitSha", String(40), nullable=False)
    origin_commit_sha: Mapped[str | None] = mapped_column(
        "OriginCommitSha", String(40), nullable=True
    )
    timestamp: Mapped[datetime | None] = mapped_column("Timestamp", DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<RevisionInformation(id={self.id!r}, commit_sha={self.commit_sha!r})>"


class CompileJob(Base):
    """Compile job model - links a deploy Job to the revision it built."""

    __tablename__ = "CompileJobs"

    id: Mapped[int] = mapped_column("Id", _Id, primary_key=True)
    job_id: Mapped[int] = mapped_column("JobId", _Id, ForeignKey("Jobs.Id"), nullable=False)
    revision_information_id: Mapped[int] = mapped_column(
        "RevisionInformationId", _Id, ForeignKey("RevisionInformations.Id"), nullable=False
    )

    job: Mapped[Job] = relationship("Job", back_populates="compile_job")
    revision_information: Mapped[RevisionInformation] = relationship("RevisionInformation")

    def __repr__(self) -> str:
        return f"<CompileJob(id={self.id!r}, job_id={self.job_id!r})>"
