"""Tests for the sweep driver: enumeration, fan-out and failure isolation."""

from datetime import timedelta

import pytest
from fakes import NOW, FakeCredentials, FakeGitHub

from sisyphus.adapters.base import GitPlatformError
from sisyphus.config import QueueConfig
from sisyphus.engine import Outcome
from sisyphus.sweep import run_sweep


@pytest.fixture
def gh() -> FakeGitHub:
    return FakeGitHub()


def test_sweep_reconciles_every_repository(gh: FakeGitHub) -> None:
    """Each repository of each installation gets exactly one pass."""
    gh.add_pr("a/one", 1, NOW - timedelta(hours=1), labels={"ready-to-merge"})
    gh.add_pr("b/two", 5, NOW - timedelta(hours=1), labels={"ready-to-merge"}, mergeable_state="dirty")
    creds = FakeCredentials(gh, {1: ["a/one", "a/idle"], 2: ["b/two"]})

    report = run_sweep(creds, QueueConfig(), max_workers=2)

    outcomes = {r.repo: r.outcome for r in report.results}
    assert outcomes == {"a/one": Outcome.MERGED, "a/idle": Outcome.IDLE, "b/two": Outcome.FAILED_CONFLICT}
    assert report.installations == 2
    assert report.ok


def test_sweep_isolates_failing_installation(gh: FakeGitHub) -> None:
    """An installation whose repositories cannot be listed is skipped."""
    creds = FakeCredentials(gh, {1: ["a/one"], 2: ["b/two"]})
    creds.fail_installations.add(1)

    report = run_sweep(creds, QueueConfig())

    assert report.failed_installations == [1]
    assert [r.repo for r in report.results] == ["b/two"]
    assert not report.ok


def test_sweep_isolates_failing_repository(gh: FakeGitHub) -> None:
    """A repository whose pass raises does not stop its siblings."""

    class FlakyGitHub(FakeGitHub):
        def search_open_prs(self, repo, labels, exclude_labels=(), sort_created_asc=False):
            if repo == "a/broken":
                raise GitPlatformError("502: bad gateway", status_code=502)
            return super().search_open_prs(repo, labels, exclude_labels, sort_created_asc)

    flaky = FlakyGitHub()
    flaky.add_pr("a/fine", 1, NOW - timedelta(hours=1), labels={"ready-to-merge"})
    creds = FakeCredentials(flaky, {1: ["a/broken", "a/fine"]})

    report = run_sweep(creds, QueueConfig(), max_workers=1)

    assert report.failed_repositories == ["a/broken"]
    assert [(r.repo, r.outcome) for r in report.results] == [("a/fine", Outcome.MERGED)]


def test_sweep_raises_when_installations_unavailable(gh: FakeGitHub) -> None:
    """Failing to list installations fails the whole sweep."""
    creds = FakeCredentials(gh, {})
    creds.fail_listing = True
    with pytest.raises(GitPlatformError):
        run_sweep(creds, QueueConfig())


def test_sweep_with_no_installations(gh: FakeGitHub) -> None:
    """Nothing to do is a successful, empty report."""
    report = run_sweep(FakeCredentials(gh, {}), QueueConfig())
    assert report.results == []
    assert report.ok


def test_sweep_twice_is_safe(gh: FakeGitHub) -> None:
    """A second sweep after a merge does not merge again."""
    gh.add_pr("a/one", 1, NOW - timedelta(hours=1), labels={"ready-to-merge"})
    creds = FakeCredentials(gh, {1: ["a/one"]})
    run_sweep(creds, QueueConfig())
    second = run_sweep(creds, QueueConfig())
    assert [r.outcome for r in second.results] == [Outcome.IDLE]
    assert len(gh.calls_of("merge_pr")) == 1
