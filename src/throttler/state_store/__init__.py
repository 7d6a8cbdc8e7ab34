"""State Store - Read access to the build orchestrator's database."""

from throttler.state_store.database import Database
from throttler.state_store.exceptions import (
    StateStoreConnectionError,
    StateStoreError,
    StateStoreQueryError,
)
from throttler.state_store.models import (
    CompileJob,
    Instance,
    Job,
    RevisionInformation,
)
from throttler.state_store.store import StateStore

__all__ = [
    "CompileJob",
    "Database",
    "Instance",
    "Job",
    "RevisionInformation",
    "StateStore",
    "StateStoreConnectionError",
    "StateStoreError",
    "StateStoreQueryError",
]
