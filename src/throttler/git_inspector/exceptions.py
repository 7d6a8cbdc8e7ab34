"""Custom exceptions for Git Inspector."""


class GitInspectorError(Exception):
    """Base exception for Git Inspector errors."""


class GitCommandError(GitInspectorError):
    """A git command exited with an error."""


class GitTimeoutError(GitInspectorError):
    """A git command did not finish within the timeout."""
