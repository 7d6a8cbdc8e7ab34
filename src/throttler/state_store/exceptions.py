"""Custom exceptions for State Store."""


class StateStoreError(Exception):
    """Base exception for State Store errors."""


class StateStoreConnectionError(StateStoreError):
    """The state database could not be reached."""


class StateStoreQueryError(StateStoreError):
    """A read query against the state database failed."""
