"""Webhook HTTP server.

Serves the health check, the sweep trigger (GET, for an external cron) and
the GitHub webhook path.
"""

import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, urlsplit

from sisyphus.adapters.auth import Credentials
from sisyphus.config import AppConfig
from sisyphus.sweep import run_sweep
from sisyphus.webhook.handlers import handle_github_event
from sisyphus.webhook.signature import verify_signature

LOG = logging.getLogger("sisyphus.webhook")

SWEEP_OK = "Scheduled sweep completed."
SWEEP_FAILED = "Scheduled sweep failed"


class WebhookHandler(BaseHTTPRequestHandler):
    """Handle GET /health, GET <sweep_path> and POST <webhook_path>."""

    config: AppConfig
    credentials: Credentials

    def do_GET(self) -> None:
        path = urlsplit(self.path).path
        if path == "/health" or path == "/":
            self._send_json(200, {"status": "ok", "service": "sisyphus"})
            return
        if path == self.config.webhook.sweep_path:
            self._handle_sweep()
            return
        self.send_response(404)
        self.end_headers()

    def do_POST(self) -> None:
        if urlsplit(self.path).path == self.config.github.webhook_path:
            self._handle_github_webhook()
            return
        self.send_response(404)
        self.end_headers()

    def _send_json(self, status: int, data: dict) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        self.wfile.write(json.dumps(data).encode())

    def _send_text(self, status: int, text: str) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/plain")
        self.end_headers()
        self.wfile.write(text.encode())

    def _handle_sweep(self) -> None:
        LOG.info("Scheduled sweep initiated")
        try:
            report = run_sweep(self.credentials, self.config.queue, max_workers=self.config.scheduler.max_workers)
        except Exception as e:
            LOG.error("Scheduled sweep failed: %s", e)
            self._send_text(500, SWEEP_FAILED)
            return
        LOG.info(
            "Scheduled sweep completed: %d repositories, %d failed",
            len(report.results),
            len(report.failed_repositories),
        )
        self._send_text(200, SWEEP_OK)

    def _parse_webhook_body(self, body: bytes) -> dict:
        """Parse webhook body as JSON.

        Supports raw JSON and application/x-www-form-urlencoded (payload=...).
        """
        if not body:
            return {}
        content_type = self.headers.get("Content-Type", "")
        if "application/x-www-form-urlencoded" in content_type:
            parsed = parse_qs(body.decode("utf-8", errors="replace"), keep_blank_values=True)
            raw = (parsed.get("payload") or [None])[0]
            if raw is None:
                return {}
            return json.loads(raw)
        return json.loads(body.decode())

    def _handle_github_webhook(self) -> None:
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length) if length else b""
        if not verify_signature(self.config.webhook_secret_resolved, body, self.headers.get("X-Hub-Signature-256")):
            LOG.warning("Rejected webhook with invalid signature")
            self._send_json(401, {"error": "invalid signature"})
            return
        try:
            payload = self._parse_webhook_body(body)
        except json.JSONDecodeError:
            LOG.warning("Invalid webhook JSON")
            self._send_json(400, {"error": "invalid json"})
            return
        event = self.headers.get("X-GitHub-Event", "")
        LOG.info("Webhook event: %s.%s", event, payload.get("action", ""))
        handle_github_event(self.credentials, self.config.queue, event, payload)
        self._send_json(200, {"received": True})

    def log_message(self, format: str, *args: Any) -> None:
        LOG.debug(format, *args)


def make_server(config: AppConfig, credentials: Credentials) -> ThreadingHTTPServer:
    """Bind the server; each request is served on its own thread."""
    handler = type("BoundWebhookHandler", (WebhookHandler,), {"config": config, "credentials": credentials})
    return ThreadingHTTPServer((config.webhook.host, config.webhook.port), handler)


def run_webhook_server(config: AppConfig, credentials: Credentials) -> None:
    """Run HTTP server for webhooks, sweeps and health check."""
    server = make_server(config, credentials)
    LOG.info("Webhook server listening on %s:%s", config.webhook.host, config.webhook.port)
    server.serve_forever()
