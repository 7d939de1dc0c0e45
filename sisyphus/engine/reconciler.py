"""Reconcile one repository's merge queue.

Each call advances the queue by at most one step and returns. It is safe
to call as often as events arrive and concurrently with itself: the only
mutual exclusion is the lock label, checked then set with no atomicity.
A lost race can lock two PRs; the staleness timer and GitHub's idempotent
label and merge semantics bound the damage.
"""

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Callable, List

from pydantic import BaseModel, Field

from sisyphus.adapters.base import GitPlatformAdapter, GitPlatformError
from sisyphus.config import QueueConfig
from sisyphus.engine.state import (
    ActiveLock,
    Decision,
    StaleLock,
    decide_checks,
    decide_mergeability,
    derive_lock_state,
    select_candidate,
)
from sisyphus.logging import repo_logger

LOG = logging.getLogger("sisyphus.engine")

STALE_LOCK_MESSAGE = "Automation was stuck. I have reset the lock. Waiting for next cycle."
CONFLICT_MESSAGE = "Merge conflicts detected. Please resolve manually."
CI_FAILED_MESSAGE = "CI checks failed. Please fix and re-apply label."


class Outcome(str, Enum):
    """Observable result of one reconciliation pass."""

    BUSY = "busy"
    IDLE = "idle"
    FAILED_CONFLICT = "failed_conflict"
    BRANCH_UPDATE_REQUESTED = "branch_update_requested"
    BRANCH_UPDATE_FAILED = "branch_update_failed"
    CHECKS_UNAVAILABLE = "checks_unavailable"
    FAILED_CI = "failed_ci"
    WAITING_FOR_CI = "waiting_for_ci"
    MERGED = "merged"
    MERGE_FAILED = "merge_failed"
    WAITING_FOR_STATE = "waiting_for_state"


class ReconcileResult(BaseModel):
    """What a pass did to one repository."""

    repo: str
    outcome: Outcome
    pr_number: int | None = None
    released_locks: List[int] = Field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _comment(queue: QueueConfig, message: str) -> str:
    return f"{queue.comment_prefix} {message}"


def fail_pr(
    adapter: GitPlatformAdapter,
    repo: str,
    pr_number: int,
    label: str,
    message: str,
    queue: QueueConfig,
) -> None:
    """Kick a PR out of the queue: comment, drop trigger and lock, add the terminal label.

    The four calls are not transactional; a failure part-way leaves the PR
    partly relabelled and propagates.
    """
    adapter.create_comment(repo, pr_number, _comment(queue, message))
    adapter.remove_label(repo, pr_number, queue.labels.trigger)
    adapter.remove_label(repo, pr_number, queue.labels.lock)
    adapter.add_label(repo, pr_number, label)


def release_stale_lock(adapter: GitPlatformAdapter, repo: str, pr_number: int, queue: QueueConfig) -> None:
    """Remove an abandoned lock and leave an audit comment."""
    adapter.remove_label(repo, pr_number, queue.labels.lock)
    adapter.create_comment(repo, pr_number, _comment(queue, STALE_LOCK_MESSAGE))


def _cleanup_after_merge(adapter: GitPlatformAdapter, repo: str, pr_number: int, queue: QueueConfig, log) -> None:
    for label in (queue.labels.trigger, queue.labels.lock):
        try:
            adapter.remove_label(repo, pr_number, label)
        except GitPlatformError as e:
            log.warning("Merged PR #%s but could not remove label %r: %s", pr_number, label, e)


def reconcile_repo(
    adapter: GitPlatformAdapter,
    repo: str,
    queue: QueueConfig,
    now: Callable[[], datetime] = _utcnow,
) -> ReconcileResult:
    """Advance the merge queue of repo by at most one action.

    Gateway errors from searches, locking and the PR fetch propagate to the
    caller; branch update, check listing and merge failures are logged and
    reported in the result, leaving labels untouched for the next pass.
    """
    log = repo_logger(LOG, repo)
    labels = queue.labels

    # A. Stuck locks
    locked = adapter.search_open_prs(repo, [labels.lock])
    lock_state = derive_lock_state(locked, now(), queue.stale_lock_threshold)
    if isinstance(lock_state, ActiveLock):
        log.info("Repo is busy processing PR #%s. Skipping.", lock_state.pr_number)
        return ReconcileResult(repo=repo, outcome=Outcome.BUSY, pr_number=lock_state.pr_number)
    released: List[int] = []
    if isinstance(lock_state, StaleLock):
        for pr in lock_state.prs:
            log.warning("Found stale lock on PR #%s. Releasing.", pr.number)
            release_stale_lock(adapter, repo, pr.number, queue)
            released.append(pr.number)

    # B. Next candidate, FIFO
    candidates = adapter.search_open_prs(repo, [labels.trigger], exclude_labels=[labels.lock], sort_created_asc=True)
    candidate = select_candidate(candidates)
    if candidate is None:
        log.debug("No PRs waiting to merge")
        return ReconcileResult(repo=repo, outcome=Outcome.IDLE, released_locks=released)
    pr_number = candidate.number

    def result(outcome: Outcome) -> ReconcileResult:
        return ReconcileResult(repo=repo, outcome=outcome, pr_number=pr_number, released_locks=released)

    # C. Lock, then fetch the full record (search hits carry no mergeability)
    adapter.add_label(repo, pr_number, labels.lock)
    pr = adapter.get_pr(repo, pr_number)

    # D. Evaluate
    decision = decide_mergeability(pr)
    if decision is Decision.FAIL_CONFLICT:
        log.info("PR #%s has merge conflicts.", pr_number)
        fail_pr(adapter, repo, pr_number, labels.conflict, CONFLICT_MESSAGE, queue)
        return result(Outcome.FAILED_CONFLICT)

    if decision is Decision.UPDATE_BRANCH:
        log.info("PR #%s is behind. Updating branch.", pr_number)
        try:
            adapter.update_branch(repo, pr_number, expected_head_sha=pr.head_sha or None)
        except GitPlatformError as e:
            # Often the branch was just updated by someone else
            log.error("Branch update for PR #%s failed: %s", pr_number, e)
            return result(Outcome.BRANCH_UPDATE_FAILED)
        # The push fires a synchronize event which re-enters here
        return result(Outcome.BRANCH_UPDATE_REQUESTED)

    try:
        check_runs = adapter.list_check_runs(repo, pr.head_sha)
    except GitPlatformError as e:
        log.error("Could not list checks for PR #%s: %s", pr_number, e)
        return result(Outcome.CHECKS_UNAVAILABLE)

    decision = decide_checks(pr, check_runs)
    if decision is Decision.FAIL_CI:
        log.info("PR #%s failed CI.", pr_number)
        fail_pr(adapter, repo, pr_number, labels.fail, CI_FAILED_MESSAGE, queue)
        return result(Outcome.FAILED_CI)

    if decision is Decision.WAIT_FOR_CI:
        log.info("PR #%s is waiting on CI.", pr_number)
        return result(Outcome.WAITING_FOR_CI)

    if decision is Decision.MERGE:
        log.info("Merging PR #%s", pr_number)
        try:
            adapter.merge_pr(repo, pr_number, method=queue.merge_method, sha=pr.head_sha or None)
        except GitPlatformError as e:
            # Possibly transient; keep the lock so the next pass retries
            log.error("Merge failed for PR #%s: %s", pr_number, e)
            return result(Outcome.MERGE_FAILED)
        if queue.cleanup_labels_after_merge:
            _cleanup_after_merge(adapter, repo, pr_number, queue, log)
        return result(Outcome.MERGED)

    log.info("PR #%s state is '%s'. Waiting.", pr_number, pr.mergeable_state)
    return result(Outcome.WAITING_FOR_STATE)
