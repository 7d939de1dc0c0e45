"""Pull request models: partial search hit and full record."""

from datetime import datetime
from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class MergeableState(str, Enum):
    """GitHub's mergeable_state classification of a pull request."""

    UNKNOWN = "unknown"
    CLEAN = "clean"
    DIRTY = "dirty"
    BEHIND = "behind"
    UNSTABLE = "unstable"
    HAS_HOOKS = "has_hooks"
    BLOCKED = "blocked"
    DRAFT = "draft"


class PullRequestSummary(BaseModel):
    """Pull request as returned by issue search (no mergeability, no head)."""

    number: int
    created_at: datetime
    updated_at: datetime
    labels: List[str] = Field(default_factory=list)


class PullRequest(BaseModel):
    """Full pull request record."""

    number: int
    state: str = "open"
    head_sha: str
    # Kept as the raw string: GitHub may report states not listed in MergeableState
    mergeable_state: str = MergeableState.UNKNOWN.value
    labels: List[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
