"""Merge queue reconciliation engine."""

from sisyphus.engine.reconciler import Outcome, ReconcileResult, fail_pr, reconcile_repo
from sisyphus.engine.state import ActiveLock, Decision, LockState, NoLock, StaleLock

__all__ = [
    "ActiveLock",
    "Decision",
    "LockState",
    "NoLock",
    "Outcome",
    "ReconcileResult",
    "StaleLock",
    "fail_pr",
    "reconcile_repo",
]
