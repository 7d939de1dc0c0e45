"""Sisyphus entry point.

Three modes: serve (webhook server, plus in-process sweeps when
scheduler.enabled), sweep (one sweep, then exit) and reconcile (one pass
for one repository). Usage: sisyphus serve | sisyphus sweep | sisyphus
reconcile owner/repo.
"""

import argparse
import logging
import sys
from pathlib import Path

from sisyphus.adapters.auth import Credentials, build_credentials
from sisyphus.config import AppConfig, ConfigError, load_config
from sisyphus.engine.reconciler import reconcile_repo
from sisyphus.logging import SisyphusLogging
from sisyphus.models import Repository
from sisyphus.scheduler import start_scheduler_thread
from sisyphus.sweep import run_sweep
from sisyphus.webhook.server import run_webhook_server

LOG = logging.getLogger("sisyphus")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI with optional subcommand (serve | sweep | reconcile)."""
    parser = argparse.ArgumentParser(
        prog="sisyphus",
        description="Sisyphus - label-driven single-lane merge queue for GitHub",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only load and validate config, then exit",
    )
    sub = parser.add_subparsers(dest="subcommand")
    sub.add_parser("serve", help="Run the webhook server (default)")
    sub.add_parser("sweep", help="Reconcile every visible repository once")
    reconcile = sub.add_parser("reconcile", help="Run one reconciliation pass for a repository")
    reconcile.add_argument("repository", help="owner/name")
    parsed = parser.parse_args(argv)
    parsed.subcommand = parsed.subcommand or "serve"
    return parsed


def run_serve(config: AppConfig, credentials: Credentials) -> None:
    """Run the webhook server and, if enabled, the sweep scheduler."""
    if not config.webhook.enabled:
        LOG.warning("Webhook disabled in config; only scheduled sweeps will run.")
    LOG.info(
        "Sisyphus started | webhook=%s | scheduler=%s | stale_lock_minutes=%s",
        config.webhook.enabled,
        config.scheduler.enabled,
        config.queue.stale_lock_minutes,
    )
    if config.scheduler.enabled:
        thread = start_scheduler_thread(config, credentials)
        if not config.webhook.enabled:
            thread.join()
            return
    if config.webhook.enabled:
        run_webhook_server(config, credentials)


def run_once(config: AppConfig, credentials: Credentials) -> int:
    """One sweep; exit status 0 only if every repository reconciled."""
    report = run_sweep(credentials, config.queue, max_workers=config.scheduler.max_workers)
    for result in report.results:
        print(f"{result.repo}: {result.outcome.value}" + (f" (#{result.pr_number})" if result.pr_number else ""))
    return 0 if report.ok else 1


def run_reconcile(config: AppConfig, credentials: Credentials, repository: str) -> int:
    """One pass for one repository; prints the outcome."""
    repo = Repository.parse(repository)
    installation_id = credentials.installation_for(repo.full_name)
    if installation_id is None:
        print(f"No installation can see {repo.full_name}", file=sys.stderr)
        return 1
    result = reconcile_repo(credentials.installation_adapter(installation_id), repo.full_name, config.queue)
    print(f"{result.repo}: {result.outcome.value}" + (f" (#{result.pr_number})" if result.pr_number else ""))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point: dispatch to serve, sweep or reconcile."""
    args = parse_args(argv)

    config_path = args.config
    if not config_path.is_file() and config_path == Path("config.yaml"):
        if Path("config.example.yaml").is_file():
            config_path = Path("config.example.yaml")
            logging.basicConfig(level=logging.INFO)
            LOG.warning("config.yaml not found, using config.example.yaml")

    config = load_config(config_path)
    SisyphusLogging(config.logging).setup()

    try:
        credentials = build_credentials(config)
    except ConfigError as e:
        if args.check:
            print(f"Config invalid: {e}")
        else:
            LOG.error("%s", e)
        return 1

    if args.check:
        print("Config OK:", type(credentials).__name__, config.webhook.sweep_path)
        return 0

    try:
        if args.subcommand == "sweep":
            return run_once(config, credentials)
        if args.subcommand == "reconcile":
            return run_reconcile(config, credentials, args.repository)
        run_serve(config, credentials)
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        LOG.exception("Fatal error: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
