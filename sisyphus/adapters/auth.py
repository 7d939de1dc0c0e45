"""Credentials: GitHub App (installation discovery) or a plain token.

A credentials provider answers three questions for the sweep and the
webhook dispatcher: which installations exist, which repositories each
one can see, and which adapter acts on behalf of an installation.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Tuple

import jwt
import requests

from sisyphus.adapters.base import GitPlatformAdapter, GitPlatformError
from sisyphus.adapters.github import GitHubAdapter
from sisyphus.config import AppConfig, ConfigError
from sisyphus.models import Installation, Repository

LOG = logging.getLogger("sisyphus.adapters.auth")

# GitHub rejects app JWTs living longer than 10 minutes
APP_JWT_TTL_SECONDS = 540
# Backdate iat to tolerate clock drift
APP_JWT_CLOCK_SKEW_SECONDS = 60
# Refresh installation tokens this long before they expire
TOKEN_REFRESH_MARGIN_SECONDS = 300

TOKEN_INSTALLATION_ID = 0


class Credentials(ABC):
    """Source of authenticated adapters."""

    @abstractmethod
    def list_installations(self) -> List[Installation]: ...

    @abstractmethod
    def list_repositories(self, installation_id: int) -> List[Repository]: ...

    @abstractmethod
    def installation_adapter(self, installation_id: int | None) -> GitPlatformAdapter: ...

    def installation_for(self, repo: str) -> int | None:
        """Id of the first installation that can see repo ("owner/name")."""
        for installation in self.list_installations():
            if repo in {r.full_name for r in self.list_repositories(installation.id)}:
                return installation.id
        return None


class GitHubAppCredentials(Credentials):
    """GitHub App: RS256 app JWT exchanged for installation access tokens."""

    def __init__(self, app_id: int, private_key: str, api_url: str = "https://api.github.com") -> None:
        self._app_id = app_id
        self._private_key = private_key
        self._api_url = api_url.rstrip("/")
        self._session = requests.Session()
        self._session.headers["Accept"] = "application/vnd.github+json"
        self._tokens: Dict[int, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def app_jwt(self) -> str:
        """Signed JWT identifying the App itself."""
        now = int(time.time())
        payload = {
            "iat": now - APP_JWT_CLOCK_SKEW_SECONDS,
            "exp": now + APP_JWT_TTL_SECONDS,
            "iss": str(self._app_id),
        }
        return jwt.encode(payload, self._private_key, algorithm="RS256")

    def app_adapter(self) -> GitHubAdapter:
        """Adapter authenticated as the App (installation listing only)."""
        return GitHubAdapter(token=self.app_jwt(), api_url=self._api_url)

    def installation_token(self, installation_id: int) -> str:
        """Return a cached installation token, fetching a new one near expiry."""
        with self._lock:
            cached = self._tokens.get(installation_id)
            if cached and cached[1] - TOKEN_REFRESH_MARGIN_SECONDS > time.time():
                return cached[0]
            token, expires_at = self._fetch_installation_token(installation_id)
            self._tokens[installation_id] = (token, expires_at)
            return token

    def _fetch_installation_token(self, installation_id: int) -> Tuple[str, float]:
        url = f"{self._api_url}/app/installations/{installation_id}/access_tokens"
        resp = self._session.post(url, headers={"Authorization": f"Bearer {self.app_jwt()}"}, timeout=30)
        if resp.status_code >= 400:
            raise GitPlatformError(
                f"Installation token for {installation_id} -> {resp.status_code}: {resp.text or resp.reason}",
                status_code=resp.status_code,
            )
        data = resp.json()
        expires_at = data.get("expires_at")
        expiry = (
            datetime.fromisoformat(expires_at.replace("Z", "+00:00")).timestamp()
            if expires_at
            else time.time() + 3600
        )
        LOG.debug("Fetched installation token for %s", installation_id)
        return data["token"], expiry

    def list_installations(self) -> List[Installation]:
        return self.app_adapter().list_installations()

    def list_repositories(self, installation_id: int) -> List[Repository]:
        return self.installation_adapter(installation_id).list_installation_repositories()

    def installation_adapter(self, installation_id: int | None) -> GitPlatformAdapter:
        if installation_id is None:
            raise GitPlatformError("Event carries no installation id; cannot authenticate as the App")
        return GitHubAdapter(token=self.installation_token(installation_id), api_url=self._api_url)


class TokenCredentials(Credentials):
    """Personal access token: one pseudo-installation with a fixed repo list."""

    def __init__(self, token: str, repositories: List[str], api_url: str = "https://api.github.com") -> None:
        self._token = token
        self._repositories = [Repository.parse(r) for r in repositories]
        self._api_url = api_url

    def list_installations(self) -> List[Installation]:
        return [Installation(id=TOKEN_INSTALLATION_ID, account="token")]

    def list_repositories(self, installation_id: int) -> List[Repository]:
        return list(self._repositories)

    def installation_for(self, repo: str) -> int | None:
        # A token can act on any repository it has access to, listed or not
        return TOKEN_INSTALLATION_ID

    def installation_adapter(self, installation_id: int | None) -> GitPlatformAdapter:
        return GitHubAdapter(token=self._token, api_url=self._api_url)


def build_credentials(config: AppConfig) -> Credentials:
    """App credentials when app_id and a private key are set, else a token."""
    api_url = config.github.api_url
    private_key = config.private_key_resolved
    if config.github.app_id and private_key:
        return GitHubAppCredentials(config.github.app_id, private_key, api_url=api_url)
    token = config.github_token_resolved
    if token:
        return TokenCredentials(token, config.github.repositories, api_url=api_url)
    raise ConfigError("No GitHub credentials: set github.app_id + private key, or GITHUB_TOKEN")
