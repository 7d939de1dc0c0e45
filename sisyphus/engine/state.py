"""Pure queue-state derivation and decisions.

Nothing here performs I/O: the reconciler fetches labels, PRs and check
runs, and these functions decide what they mean.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, List, Sequence, Union

from pydantic import BaseModel

from sisyphus.models import CheckRun, MergeableState, PullRequest, PullRequestSummary

FAILED_CONCLUSIONS = frozenset({"failure", "timed_out"})
PENDING_STATUSES = frozenset({"in_progress", "queued"})
MERGEABLE_STATES = frozenset({MergeableState.CLEAN.value, MergeableState.HAS_HOOKS.value, MergeableState.UNSTABLE.value})


class NoLock(BaseModel):
    """No open PR holds the lock label."""


class ActiveLock(BaseModel):
    """A PR holds a lock younger than the staleness threshold: repo is busy."""

    pr_number: int
    locked_at: datetime


class StaleLock(BaseModel):
    """Every lock holder is older than the threshold and must be released."""

    prs: List[PullRequestSummary]


LockState = Union[NoLock, ActiveLock, StaleLock]


class Decision(str, Enum):
    """What to do with the locked PR."""

    FAIL_CONFLICT = "fail_conflict"
    UPDATE_BRANCH = "update_branch"
    CHECK_CI = "check_ci"
    FAIL_CI = "fail_ci"
    WAIT_FOR_CI = "wait_for_ci"
    MERGE = "merge"
    WAIT_FOR_STATE = "wait_for_state"


def derive_lock_state(locked: Sequence[PullRequestSummary], now: datetime, threshold: timedelta) -> LockState:
    """Classify the lock holders of a repository.

    Lock age is approximated by the PR's updated_at. More than one holder
    only happens after a lost race; any fresh holder keeps the repo busy.
    """
    if not locked:
        return NoLock()
    fresh = [pr for pr in locked if now - pr.updated_at <= threshold]
    if fresh:
        newest = max(fresh, key=lambda pr: pr.updated_at)
        return ActiveLock(pr_number=newest.number, locked_at=newest.updated_at)
    return StaleLock(prs=list(locked))


def select_candidate(candidates: Iterable[PullRequestSummary]) -> PullRequestSummary | None:
    """Oldest created PR first; ties keep search order."""
    ordered = list(candidates)
    if not ordered:
        return None
    return min(ordered, key=lambda pr: pr.created_at)


def decide_mergeability(pr: PullRequest) -> Decision:
    """First gate: conflicts and stale branches are handled before CI."""
    if pr.mergeable_state == MergeableState.DIRTY.value:
        return Decision.FAIL_CONFLICT
    if pr.mergeable_state == MergeableState.BEHIND.value:
        return Decision.UPDATE_BRANCH
    return Decision.CHECK_CI


def decide_checks(pr: PullRequest, check_runs: Iterable[CheckRun]) -> Decision:
    """Second gate: failed CI beats pending CI beats merge."""
    runs = list(check_runs)
    if any(run.conclusion in FAILED_CONCLUSIONS for run in runs):
        return Decision.FAIL_CI
    if any(run.status in PENDING_STATUSES for run in runs):
        return Decision.WAIT_FOR_CI
    if pr.mergeable_state in MERGEABLE_STATES:
        return Decision.MERGE
    return Decision.WAIT_FOR_STATE
