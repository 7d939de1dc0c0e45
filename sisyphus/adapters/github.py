"""GitHub API adapter."""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List
from urllib.parse import quote

import requests

from sisyphus.adapters.base import GitPlatformAdapter, GitPlatformError
from sisyphus.models import CheckRun, Installation, PullRequest, PullRequestSummary, Repository

LOG = logging.getLogger("sisyphus.adapters.github")

PER_PAGE = 100


def _parse_iso(s: str) -> datetime:
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _label_names(data: Dict[str, Any]) -> List[str]:
    return [lb["name"] for lb in (data.get("labels") or []) if isinstance(lb, dict) and "name" in lb]


def _summary_from_api(data: Dict[str, Any]) -> PullRequestSummary:
    return PullRequestSummary(
        number=data["number"],
        created_at=_parse_iso(data["created_at"]),
        updated_at=_parse_iso(data["updated_at"]),
        labels=_label_names(data),
    )


def _pr_from_api(data: Dict[str, Any]) -> PullRequest:
    head = data.get("head") or {}
    created = data.get("created_at")
    updated = data.get("updated_at")
    return PullRequest(
        number=data["number"],
        state=data.get("state", "open"),
        head_sha=head.get("sha", ""),
        mergeable_state=data.get("mergeable_state") or "unknown",
        labels=_label_names(data),
        created_at=_parse_iso(created) if created else None,
        updated_at=_parse_iso(updated) if updated else None,
    )


def _check_run_from_api(data: Dict[str, Any]) -> CheckRun:
    return CheckRun(
        name=data.get("name") or "",
        status=data.get("status") or "",
        conclusion=data.get("conclusion"),
    )


def _repository_from_api(data: Dict[str, Any]) -> Repository:
    owner = data.get("owner") or {}
    return Repository(owner=owner.get("login", ""), name=data["name"])


def build_search_query(
    repo: str,
    labels: Iterable[str],
    exclude_labels: Iterable[str] = (),
    sort_created_asc: bool = False,
) -> str:
    """Build the issue search query for open PRs of repo filtered by labels.

    >>> build_search_query("o/r", ["ready-to-merge"], ["processing-merge"], True)
    'repo:o/r is:pr is:open label:"ready-to-merge" -label:"processing-merge" sort:created-asc'
    """
    parts = [f"repo:{repo}", "is:pr", "is:open"]
    parts.extend(f'label:"{label}"' for label in labels)
    parts.extend(f'-label:"{label}"' for label in exclude_labels)
    if sort_created_asc:
        parts.append("sort:created-asc")
    return " ".join(parts)


class GitHubAdapter(GitPlatformAdapter):
    """GitHub REST API implementation."""

    def __init__(self, token: str, api_url: str = "https://api.github.com") -> None:
        self._api_url = api_url.rstrip("/")
        self._session = requests.Session()
        self._session.headers["Authorization"] = f"Bearer {token}"
        self._session.headers["Accept"] = "application/vnd.github+json"
        self._session.headers["X-GitHub-Api-Version"] = "2022-11-28"

    def _request(
        self,
        method: str,
        path: str,
        params: Dict[str, Any] | None = None,
        json: Dict[str, Any] | None = None,
    ) -> requests.Response:
        url = path if path.startswith("http") else f"{self._api_url}/{path.lstrip('/')}"
        resp = self._session.request(method, url, params=params, json=json, timeout=30)
        if resp.status_code >= 400:
            msg = resp.text or resp.reason or str(resp.status_code)
            try:
                msg = resp.json().get("message", msg)
            except Exception:
                pass
            raise GitPlatformError(f"{method} {path} -> {resp.status_code}: {msg}", status_code=resp.status_code)
        return resp

    def _paginate(self, path: str, key: str | None = None, params: Dict[str, Any] | None = None) -> Iterator[Any]:
        """Yield items across pages following the Link: rel="next" header.

        key selects the list inside an object response (e.g. "check_runs").
        """
        url: str | None = path
        page_params: Dict[str, Any] | None = {"per_page": PER_PAGE, **(params or {})}
        while url:
            resp = self._request("GET", url, params=page_params)
            data = resp.json() or ([] if key is None else {})
            yield from (data if key is None else data.get(key) or [])
            url = (resp.links or {}).get("next", {}).get("url")
            # The next URL already carries the query string
            page_params = None

    def search_open_prs(
        self,
        repo: str,
        labels: Iterable[str],
        exclude_labels: Iterable[str] = (),
        sort_created_asc: bool = False,
    ) -> List[PullRequestSummary]:
        q = build_search_query(repo, labels, exclude_labels, sort_created_asc)
        LOG.debug("Search: %s", q)
        data = self._request("GET", "/search/issues", params={"q": q, "per_page": PER_PAGE}).json() or {}
        return [_summary_from_api(d) for d in data.get("items") or []]

    def get_pr(self, repo: str, pr_number: int) -> PullRequest:
        resp = self._request("GET", f"/repos/{repo}/pulls/{pr_number}")
        return _pr_from_api(resp.json())

    def add_label(self, repo: str, pr_number: int, label: str) -> None:
        self._request("POST", f"/repos/{repo}/issues/{pr_number}/labels", json={"labels": [label]})

    def remove_label(self, repo: str, pr_number: int, label: str) -> None:
        try:
            self._request("DELETE", f"/repos/{repo}/issues/{pr_number}/labels/{quote(label, safe='')}")
        except GitPlatformError as e:
            if e.status_code != 404:
                raise
            LOG.debug("Label %r was not on %s#%s", label, repo, pr_number)

    def create_comment(self, repo: str, pr_number: int, body: str) -> None:
        self._request("POST", f"/repos/{repo}/issues/{pr_number}/comments", json={"body": body})

    def list_check_runs(self, repo: str, head_sha: str) -> List[CheckRun]:
        return [
            _check_run_from_api(d)
            for d in self._paginate(f"/repos/{repo}/commits/{head_sha}/check-runs", key="check_runs")
        ]

    def update_branch(self, repo: str, pr_number: int, expected_head_sha: str | None = None) -> None:
        payload = {"expected_head_sha": expected_head_sha} if expected_head_sha else {}
        self._request("PUT", f"/repos/{repo}/pulls/{pr_number}/update-branch", json=payload)

    def merge_pr(self, repo: str, pr_number: int, method: str = "squash", sha: str | None = None) -> None:
        payload: Dict[str, Any] = {"merge_method": method}
        if sha:
            payload["sha"] = sha
        self._request("PUT", f"/repos/{repo}/pulls/{pr_number}/merge", json=payload)

    def list_installations(self) -> List[Installation]:
        return [
            Installation(id=d["id"], account=(d.get("account") or {}).get("login", ""))
            for d in self._paginate("/app/installations")
        ]

    def list_installation_repositories(self) -> List[Repository]:
        return [_repository_from_api(d) for d in self._paginate("/installation/repositories", key="repositories")]
