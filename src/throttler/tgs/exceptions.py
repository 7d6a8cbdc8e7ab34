"""Custom exceptions for the TGS client."""


class TGSError(Exception):
    """Base exception for build-orchestration API errors."""


class AuthenticationError(TGSError):
    """Login was rejected or no session is available."""


class TGSRequestError(TGSError):
    """The API answered a request with an error status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
