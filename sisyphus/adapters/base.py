"""Abstract base for Git platform adapters."""

from abc import ABC, abstractmethod
from typing import Iterable, List

from sisyphus.models import CheckRun, Installation, PullRequest, PullRequestSummary, Repository


class GitPlatformError(Exception):
    """Raised when a Git platform API call fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitPlatformAdapter(ABC):
    """Interface the merge queue needs from a Git hosting platform.

    ``repo`` is always the full name ("owner/name"). Every call is one
    synchronous round-trip and may raise GitPlatformError.
    """

    @abstractmethod
    def search_open_prs(
        self,
        repo: str,
        labels: Iterable[str],
        exclude_labels: Iterable[str] = (),
        sort_created_asc: bool = False,
    ) -> List[PullRequestSummary]:
        """Search open PRs carrying all labels and none of exclude_labels."""
        ...

    @abstractmethod
    def get_pr(self, repo: str, pr_number: int) -> PullRequest:
        """Fetch the full PR record (head SHA, mergeability)."""
        ...

    @abstractmethod
    def add_label(self, repo: str, pr_number: int, label: str) -> None:
        """Attach a label to a PR. Adding a present label is a no-op."""
        ...

    @abstractmethod
    def remove_label(self, repo: str, pr_number: int, label: str) -> None:
        """Detach a label from a PR. Removing an absent label is a no-op."""
        ...

    @abstractmethod
    def create_comment(self, repo: str, pr_number: int, body: str) -> None:
        """Post a comment on a PR."""
        ...

    @abstractmethod
    def list_check_runs(self, repo: str, head_sha: str) -> List[CheckRun]:
        """List check runs for a commit."""
        ...

    @abstractmethod
    def update_branch(self, repo: str, pr_number: int, expected_head_sha: str | None = None) -> None:
        """Merge the base branch into the PR head (asynchronous on the platform)."""
        ...

    @abstractmethod
    def merge_pr(self, repo: str, pr_number: int, method: str = "squash", sha: str | None = None) -> None:
        """Merge a PR."""
        ...

    def list_installations(self) -> List[Installation]:
        """List App installations. Only app-authenticated adapters support this."""
        raise NotImplementedError("list_installations")

    def list_installation_repositories(self) -> List[Repository]:
        """List repositories visible to an installation token. Override if needed."""
        raise NotImplementedError("list_installation_repositories")
