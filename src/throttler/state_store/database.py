"""Database connection manager for State Store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import create_engine, make_url, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from throttler.state_store.exceptions import StateStoreConnectionError
from throttler.state_store.models import Base

if TYPE_CHECKING:
    from sqlalchemy import URL, Engine


class Database:
    """Database connection manager.

    Wraps a SQLAlchemy engine for any supported backend. The throttler only
    reads from the database; table creation exists for local setups and tests.
    """

    def __init__(self, url: str | URL = "sqlite:///:memory:") -> None:
        """Initialize database connection.

        Args:
            url: SQLAlchemy database URL. Use "sqlite:///:memory:" for in-memory DB.
        """
        self.url = make_url(url)
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine:
        """Get or create the database engine."""
        if self._engine is None:
            in_memory = self.url.get_backend_name() == "sqlite" and not (
                self.url.database and self.url.database != ":memory:"
            )
            if in_memory:
                # Share the single in-memory connection across sessions
                self._engine = create_engine(
                    self.url,
                    echo=False,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            else:
                self._engine = create_engine(
                    self.url,
                    echo=False,
                    pool_pre_ping=True,
                )
        return self._engine

    @property
    def session_factory(self) -> sessionmaker[Session]:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                expire_on_commit=False,
            )
        return self._session_factory

    def create_tables(self) -> None:
        """Create all tables if they don't exist."""
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session.

        Returns:
            A new SQLAlchemy session.
        """
        return self.session_factory()

    def ping(self) -> None:
        """Check the database is reachable.

        Raises:
            StateStoreConnectionError: If a connection cannot be established.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StateStoreConnectionError(f"Cannot connect to state database: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
