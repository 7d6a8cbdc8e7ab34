"""Data models for the TGS client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class TestMerge:
    """A pull request merged on top of an instance's tracked branch.

    Attributes:
        number: Pull request number.
        comment: Free-text comment attached to the merge.
        target_commit_sha: Commit of the pull request to merge. None lets the
            server resolve the current head of the pull request.
    """

    __test__ = False  # not a pytest test class

    number: int
    comment: str | None = None
    target_commit_sha: str | None = None

    def to_request(self) -> dict[str, Any]:
        """Serialize as an entry of the repository update ``newTestMerges`` list."""
        return {
            "number": self.number,
            "comment": self.comment,
            "targetCommitSha": self.target_commit_sha,
        }


@dataclass
class RepositoryState:
    """Repository state of an instance as reported by the server."""

    reference: str | None
    revision: str | None = None
    active_test_merges: list[TestMerge] = field(default_factory=list)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> RepositoryState:
        """Parse a ``GET /Repository`` response body."""
        revision_info = data.get("revisionInformation") or {}
        test_merges = [
            TestMerge(
                number=int(tm["number"]),
                comment=tm.get("comment"),
                target_commit_sha=tm.get("targetCommitSha"),
            )
            for tm in revision_info.get("activeTestMerges") or []
        ]
        return cls(
            reference=data.get("reference"),
            revision=revision_info.get("commitSha"),
            active_test_merges=test_merges,
        )
