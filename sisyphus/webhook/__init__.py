"""Webhook server and handlers for GitHub events."""

from sisyphus.webhook.handlers import handle_github_event
from sisyphus.webhook.server import make_server, run_webhook_server

__all__ = ["handle_github_event", "make_server", "run_webhook_server"]
