"""Scheduler: run a sweep every interval, for deployments without an external cron."""

import logging
import threading
import time

from sisyphus.adapters.auth import Credentials
from sisyphus.config import AppConfig
from sisyphus.sweep import run_sweep

LOG = logging.getLogger("sisyphus.scheduler")


def run_scheduler_loop(config: AppConfig, credentials: Credentials, interval_seconds: int = 300) -> None:
    """Loop: sweep, then sleep interval_seconds. Tick errors are logged, never fatal."""
    while True:
        try:
            report = run_sweep(credentials, config.queue, max_workers=config.scheduler.max_workers)
            LOG.info(
                "Scheduled sweep done: %d repositories, %d failed",
                len(report.results),
                len(report.failed_repositories),
            )
        except Exception as e:
            LOG.exception("Scheduler tick error: %s", e)
        time.sleep(interval_seconds)


def start_scheduler_thread(config: AppConfig, credentials: Credentials) -> threading.Thread:
    """Start the sweep loop in a daemon thread."""
    thread = threading.Thread(
        target=run_scheduler_loop,
        args=(config, credentials),
        kwargs={"interval_seconds": config.scheduler.interval_seconds},
        name="sisyphus-scheduler",
        daemon=True,
    )
    thread.start()
    return thread
