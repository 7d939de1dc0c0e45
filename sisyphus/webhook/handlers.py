"""Handle GitHub webhook events.

Every relevant event just means "something about this repository may have
changed": the handler resolves the repository and runs one reconciliation
pass. No other payload data is used.
"""

import logging
from typing import Any, Dict

from sisyphus.adapters.auth import Credentials
from sisyphus.config import QueueConfig
from sisyphus.engine.reconciler import ReconcileResult, reconcile_repo

TRIGGER_EVENTS = frozenset(
    {
        ("pull_request", "labeled"),
        ("pull_request", "synchronize"),
        ("pull_request", "review_request_removed"),
        ("check_run", "completed"),
    }
)


def _repo_from_payload(payload: Dict[str, Any]) -> str | None:
    repo_payload = payload.get("repository") or {}
    full_name = repo_payload.get("full_name")
    if full_name:
        return full_name
    owner = (repo_payload.get("owner") or {}).get("login")
    name = repo_payload.get("name")
    if owner and name:
        return f"{owner}/{name}"
    return None


def _installation_from_payload(payload: Dict[str, Any]) -> int | None:
    installation_id = (payload.get("installation") or {}).get("id")
    return int(installation_id) if installation_id is not None else None


def handle_github_event(
    credentials: Credentials,
    queue: QueueConfig,
    event: str,
    payload: Dict[str, Any],
    log: logging.Logger | None = None,
) -> ReconcileResult | None:
    """Reconcile the event's repository if the event can move the queue.

    Supported events:
    - pull_request (labeled, synchronize, review_request_removed)
    - check_run (completed)

    Returns the pass result, or None when the event was ignored or the pass
    failed (failures are logged, not raised).
    """
    logger = log or logging.getLogger("sisyphus.webhook.handlers")
    action = payload.get("action") or ""
    if (event, action) not in TRIGGER_EVENTS:
        logger.debug("Ignoring event %s.%s", event, action)
        return None
    repo = _repo_from_payload(payload)
    if not repo:
        logger.warning("%s.%s payload missing repository", event, action)
        return None
    try:
        adapter = credentials.installation_adapter(_installation_from_payload(payload))
        result = reconcile_repo(adapter, repo, queue)
    except Exception as e:
        logger.exception("Failed to reconcile %s after %s.%s: %s", repo, event, action, e)
        return None
    logger.info("%s.%s on %s -> %s", event, action, repo, result.outcome.value)
    return result
