"""Sweep: reconcile every repository visible to the credentials.

Safety net for lost webhooks and the only path that recovers stale locks
when no new event arrives. One installation or repository failing never
stops the others.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Tuple

from pydantic import BaseModel, Field

from sisyphus.adapters.auth import Credentials
from sisyphus.adapters.base import GitPlatformAdapter
from sisyphus.config import QueueConfig
from sisyphus.engine.reconciler import ReconcileResult, reconcile_repo

LOG = logging.getLogger("sisyphus.sweep")


class SweepReport(BaseModel):
    """Summary of one sweep."""

    installations: int = 0
    results: List[ReconcileResult] = Field(default_factory=list)
    failed_installations: List[int] = Field(default_factory=list)
    failed_repositories: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_installations and not self.failed_repositories


def _collect_targets(credentials: Credentials, report: SweepReport) -> List[Tuple[GitPlatformAdapter, str]]:
    installations = credentials.list_installations()
    report.installations = len(installations)
    targets: List[Tuple[GitPlatformAdapter, str]] = []
    for installation in installations:
        try:
            adapter = credentials.installation_adapter(installation.id)
            repos = credentials.list_repositories(installation.id)
        except Exception as e:
            LOG.error("Failed to process installation %s: %s", installation.id, e)
            report.failed_installations.append(installation.id)
            continue
        targets.extend((adapter, repo.full_name) for repo in repos)
    return targets


def run_sweep(credentials: Credentials, queue: QueueConfig, max_workers: int = 4) -> SweepReport:
    """Reconcile all repositories of all installations.

    Raises only when the installation list itself cannot be fetched.
    """
    report = SweepReport()
    targets = _collect_targets(credentials, report)
    LOG.info("Sweeping %d repositories across %d installations", len(targets), report.installations)
    if not targets:
        return report

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sweep") as pool:
        futures = {pool.submit(reconcile_repo, adapter, repo, queue): repo for adapter, repo in targets}
        for future in as_completed(futures):
            repo = futures[future]
            try:
                report.results.append(future.result())
            except Exception as e:
                LOG.error("Failed to reconcile %s: %s", repo, e)
                report.failed_repositories.append(repo)
    return report
