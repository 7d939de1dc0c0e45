"""Data models for repositories, pull requests and check runs (Pydantic)."""

from sisyphus.models.check_run import CheckRun
from sisyphus.models.pr import MergeableState, PullRequest, PullRequestSummary
from sisyphus.models.repository import Installation, Repository

__all__ = [
    "CheckRun",
    "Installation",
    "MergeableState",
    "PullRequest",
    "PullRequestSummary",
    "Repository",
]
