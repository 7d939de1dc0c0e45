"""Git platform adapters and credentials."""

from sisyphus.adapters.auth import Credentials, GitHubAppCredentials, TokenCredentials, build_credentials
from sisyphus.adapters.base import GitPlatformAdapter, GitPlatformError
from sisyphus.adapters.github import GitHubAdapter

__all__ = [
    "Credentials",
    "GitHubAdapter",
    "GitHubAppCredentials",
    "GitPlatformAdapter",
    "GitPlatformError",
    "TokenCredentials",
    "build_credentials",
]
