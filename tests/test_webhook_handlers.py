"""Tests for webhook event dispatch (event -> repository -> reconcile)."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from fakes import NOW, FakeCredentials, FakeGitHub

from sisyphus.adapters.base import GitPlatformError
from sisyphus.config import QueueConfig
from sisyphus.engine import Outcome
from sisyphus.webhook.handlers import handle_github_event


def _payload(action: str, full_name: str | None = "owner/repo", installation: int | None = 42) -> dict:
    payload: dict = {"action": action}
    if full_name:
        owner, name = full_name.split("/")
        payload["repository"] = {"full_name": full_name, "name": name, "owner": {"login": owner}}
    if installation is not None:
        payload["installation"] = {"id": installation}
    return payload


@pytest.fixture
def gh() -> FakeGitHub:
    gh = FakeGitHub()
    gh.add_pr("owner/repo", 3, NOW - timedelta(hours=1), labels={"ready-to-merge"})
    return gh


@pytest.mark.parametrize(
    "event,action",
    [
        ("pull_request", "labeled"),
        ("pull_request", "synchronize"),
        ("pull_request", "review_request_removed"),
        ("check_run", "completed"),
    ],
)
def test_trigger_events_reconcile_repository(gh: FakeGitHub, event: str, action: str) -> None:
    """Each supported event runs one pass on the payload's repository."""
    creds = FakeCredentials(gh, {42: ["owner/repo"]})
    result = handle_github_event(creds, QueueConfig(), event, _payload(action))
    assert result is not None
    assert result.repo == "owner/repo"
    assert result.outcome is Outcome.MERGED


@pytest.mark.parametrize(
    "event,action",
    [
        ("pull_request", "opened"),
        ("pull_request", "closed"),
        ("check_run", "created"),
        ("issues", "labeled"),
        ("push", ""),
    ],
)
def test_other_events_are_ignored(gh: FakeGitHub, event: str, action: str) -> None:
    """Events that cannot move the queue do not touch GitHub."""
    creds = FakeCredentials(gh, {42: ["owner/repo"]})
    assert handle_github_event(creds, QueueConfig(), event, _payload(action)) is None
    assert gh.calls == []


def test_repository_from_owner_and_name() -> None:
    """Without full_name the repo is built from owner.login and name."""
    creds = MagicMock()
    payload = {"action": "labeled", "repository": {"name": "repo", "owner": {"login": "owner"}}}
    with patch("sisyphus.webhook.handlers.reconcile_repo") as reconcile:
        handle_github_event(creds, QueueConfig(), "pull_request", payload)
    assert reconcile.call_args[0][1] == "owner/repo"


def test_installation_id_selects_adapter() -> None:
    """The installation id from the payload picks the adapter."""
    creds = MagicMock()
    with patch("sisyphus.webhook.handlers.reconcile_repo") as reconcile:
        handle_github_event(creds, QueueConfig(), "check_run", _payload("completed", installation=7))
    creds.installation_adapter.assert_called_once_with(7)
    assert reconcile.call_args[0][0] is creds.installation_adapter.return_value


def test_missing_repository_is_ignored(gh: FakeGitHub) -> None:
    """A payload without a repository is logged and skipped."""
    creds = FakeCredentials(gh, {})
    assert handle_github_event(creds, QueueConfig(), "pull_request", _payload("labeled", full_name=None)) is None
    assert gh.calls == []


def test_reconcile_errors_are_logged_not_raised(gh: FakeGitHub) -> None:
    """A gateway failure during the pass does not escape the handler."""
    gh.fail_on["search_open_prs"] = GitPlatformError("500: boom", status_code=500)
    creds = FakeCredentials(gh, {42: ["owner/repo"]})
    log = MagicMock()
    assert handle_github_event(creds, QueueConfig(), "pull_request", _payload("labeled"), log=log) is None
    log.exception.assert_called_once()
