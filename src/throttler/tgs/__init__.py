"""TGS client - Build-orchestration API for tgstation-server."""

from throttler.tgs.client import DEFAULT_API_VERSION, TGSClient
from throttler.tgs.exceptions import AuthenticationError, TGSError, TGSRequestError
from throttler.tgs.models import RepositoryState, TestMerge

__all__ = [
    "DEFAULT_API_VERSION",
    "AuthenticationError",
    "RepositoryState",
    "TGSClient",
    "TGSError",
    "TGSRequestError",
    "TestMerge",
]
