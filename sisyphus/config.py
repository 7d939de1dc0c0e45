"""Configuration loading from YAML and environment.

Secrets (GitHub token, App private key, webhook secret) are taken from
environment variables or from files (Docker secrets). Never put real
secrets in config files committed to the repo.
"""

from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(Exception):
    """Raised when the configuration cannot be used to talk to GitHub."""

    pass


def _read_secret(env_key: str, file_env_key: str) -> str | None:
    """Read secret from env var or from file path in env (e.g. Docker
    secrets)."""
    value = _current_env.get(env_key)
    if value:
        return value.strip()
    file_path = _current_env.get(file_env_key)
    if file_path:
        return Path(file_path).read_text().strip()
    return None


# Injected by load_config so resolvers can read env/file
_current_env: dict[str, str] = {}


def _is_placeholder(value: str | None) -> bool:
    return not value or value.startswith("${")


class GitHubConfig(BaseSettings):
    """GitHub API, App credentials and webhook settings."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_", extra="ignore")

    api_url: str = Field(default="https://api.github.com", description="API base URL")
    webhook_path: str = Field(default="/webhook/github", description="Webhook URL path")
    token: str | None = Field(default=None, description="Personal access token; use env or secret file")
    app_id: int | None = Field(default=None, description="GitHub App id (enables installation discovery)")
    private_key: str | None = Field(default=None, description="GitHub App private key (PEM)")
    private_key_path: str | None = Field(default=None, description="Path to the GitHub App private key file")
    webhook_secret: str = Field(default="", description="Secret for X-Hub-Signature-256 verification")
    repositories: list[str] = Field(
        default_factory=list,
        description="owner/name repositories swept when running with a plain token",
    )


class LabelsConfig(BaseModel):
    """Label names that encode queue state on a PR."""

    trigger: str = Field(default="ready-to-merge", description="Added by a human to enqueue a PR")
    lock: str = Field(default="processing-merge", description="Held by the PR currently being processed")
    conflict: str = Field(default="error-conflict", description="Terminal: merge conflicts")
    fail: str = Field(default="error-ci", description="Terminal: CI failed")


class QueueConfig(BaseSettings):
    """Merge queue behaviour: labels, lock staleness and merge method."""

    model_config = SettingsConfigDict(env_prefix="QUEUE_", extra="ignore")

    labels: LabelsConfig = Field(default_factory=LabelsConfig)
    stale_lock_minutes: float = Field(default=15, gt=0, description="Lock age after which it is released")
    merge_method: Literal["merge", "squash", "rebase"] = Field(default="squash", description="GitHub merge method")
    cleanup_labels_after_merge: bool = Field(
        default=True,
        description="Remove trigger and lock labels from a PR once it is merged",
    )
    comment_prefix: str = Field(default="🤖 **Merge Bot:**", description="Prefix of every bot comment")

    @property
    def stale_lock_threshold(self) -> timedelta:
        return timedelta(minutes=self.stale_lock_minutes)


class WebhookConfig(BaseSettings):
    """Webhook server settings."""

    model_config = SettingsConfigDict(env_prefix="WEBHOOK_", extra="ignore")

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")
    sweep_path: str = Field(default="/pr-sisyphus/scheduler", description="GET path that triggers a full sweep")
    enabled: bool = Field(default=True, description="Enable webhook server")


class SchedulerConfig(BaseSettings):
    """In-process periodic sweep settings."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_", extra="ignore")

    enabled: bool = Field(default=False, description="Run sweeps in-process instead of an external cron")
    interval_seconds: int = Field(default=300, ge=30, description="Sweep interval in seconds")
    max_workers: int = Field(default=4, ge=1, le=32, description="Repositories reconciled concurrently")


class LoggingConfig(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )


class AppConfig(BaseSettings):
    """Root application config from YAML + env."""

    model_config = SettingsConfigDict(extra="ignore")

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def github_token_resolved(self) -> str | None:
        """Resolve GitHub token from config, env or Docker secret file."""
        t = self.github.token
        if not _is_placeholder(t):
            return t
        return _read_secret("GITHUB_TOKEN", "GITHUB_TOKEN_FILE")

    @property
    def private_key_resolved(self) -> str | None:
        """Resolve the GitHub App private key from config, key file, env or
        secret file."""
        key = self.github.private_key
        if not _is_placeholder(key):
            return key
        if self.github.private_key_path:
            return Path(self.github.private_key_path).read_text()
        return _read_secret("GITHUB_PRIVATE_KEY", "GITHUB_PRIVATE_KEY_FILE")

    @property
    def webhook_secret_resolved(self) -> str:
        """Resolve webhook secret from config, env or Docker secret file."""
        s = self.github.webhook_secret
        if not _is_placeholder(s) and s != "your-webhook-secret-here":
            return s
        return _read_secret("WEBHOOK_SECRET", "WEBHOOK_SECRET_FILE") or ""


def _substitute_env(value: Any) -> Any:
    """Replace ${VAR} and $VAR in strings with os.environ."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            key = value[2:-1].strip()
            return _current_env.get(key, value)
        if value.startswith("$") and not value.startswith("${"):
            key = value[1:].strip()
            return _current_env.get(key, value)
        return value
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from YAML file and environment.

    Secrets: GITHUB_TOKEN or GITHUB_TOKEN_FILE, GITHUB_PRIVATE_KEY or
    GITHUB_PRIVATE_KEY_FILE, WEBHOOK_SECRET or WEBHOOK_SECRET_FILE.
    """
    global _current_env
    import os

    _current_env = dict(os.environ)

    path = config_path or Path("config.yaml")
    if not path.is_file():
        return AppConfig()

    raw = yaml.safe_load(path.read_text()) or {}
    raw = _substitute_env(raw)

    return AppConfig(
        github=GitHubConfig(**(raw.get("github") or {})),
        queue=QueueConfig(**(raw.get("queue") or {})),
        webhook=WebhookConfig(**(raw.get("webhook") or {})),
        scheduler=SchedulerConfig(**(raw.get("scheduler") or {})),
        logging=LoggingConfig(**(raw.get("logging") or {})),
    )
