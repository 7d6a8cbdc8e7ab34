"""Scheduler - Admission control for instance deployments."""

from throttler.scheduler.exceptions import OracleError, ThrottlerError
from throttler.scheduler.models import RunState
from throttler.scheduler.oracle import RevisionOracle
from throttler.scheduler.scheduler import Throttler

__all__ = [
    "OracleError",
    "RevisionOracle",
    "RunState",
    "Throttler",
    "ThrottlerError",
]
