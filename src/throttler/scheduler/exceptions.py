"""Exceptions for the Scheduler module."""


class ThrottlerError(Exception):
    """Base exception for throttler errors."""

    pass


class OracleError(ThrottlerError):
    """A revision lookup for a single instance failed."""

    pass
