"""Git Inspector - Reads branch and upstream revision of working copies."""

from throttler.git_inspector.exceptions import (
    GitCommandError,
    GitInspectorError,
    GitTimeoutError,
)
from throttler.git_inspector.inspector import GitInspector

__all__ = [
    "GitCommandError",
    "GitInspector",
    "GitInspectorError",
    "GitTimeoutError",
]
