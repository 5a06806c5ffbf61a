"""
GitHub README fetching via the REST API.

Only the README is needed, so a single `GET /repos/{owner}/{repo}/readme`
with the raw media type returns it on the repository's default branch,
with no branch guessing. A 404 there is followed by a repository lookup to
tell "no README" (None) apart from "no such repository" (GitHubError 404).

Upstream failures are mapped to GitHubError with the status the client
should see; the router turns them into HTTP responses.
"""

from __future__ import annotations

import logging
import re

import httpx

from app.core.config import settings
from app.core.errors import ValidationError

logger = logging.getLogger(__name__)

_GITHUB_URL_PATTERN = re.compile(
    r"^https?://(?:www\.)?github\.com/([\w\-.]+)/([\w\-.]+)",
    re.IGNORECASE,
)
_TIMEOUT_SECONDS = 15.0


class GitHubError(Exception):
    """Upstream GitHub failure with the status code to surface."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def parse_github_url(url: str) -> tuple[str, str]:
    """
    Extract (owner, repo) from a https://github.com/<owner>/<repo> URL.

    A trailing slash and a `.git` suffix are ignored.

    Raises:
        ValidationError: Empty or non-GitHub URL.
    """
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("github_url is required in the request body")

    normalized = url.strip().rstrip("/")
    if normalized.endswith(".git"):
        normalized = normalized[: -len(".git")]

    match = _GITHUB_URL_PATTERN.match(normalized)
    if match is None:
        raise ValidationError(
            "Invalid GitHub URL format. Expected format: https://github.com/owner/repo"
        )
    return match.group(1), match.group(2)


def _headers() -> dict[str, str]:
    headers = {
        "Accept": "application/vnd.github.raw+json",
        "User-Agent": settings.APP_NAME,
        "X-GitHub-Api-Version": "2022-11-28",
    }
    if settings.GITHUB_TOKEN:
        headers["Authorization"] = f"Bearer {settings.GITHUB_TOKEN}"
    return headers


def _raise_for_status(response: httpx.Response) -> None:
    """Map a non-2xx, non-404 GitHub response to GitHubError."""
    status = response.status_code
    body = response.text[:500].lower()

    if status == 429 or (
        status == 403
        and ("rate limit" in body or response.headers.get("x-ratelimit-remaining") == "0")
    ):
        raise GitHubError(429, "GitHub API rate limit exceeded")
    if status == 403:
        raise GitHubError(403, "Access to repository is forbidden")
    if status == 401:
        raise GitHubError(401, "Unauthorized access to GitHub API")

    logger.error("GitHub API error: status=%d body=%s", status, response.text[:500])
    raise GitHubError(502, "Failed to load repository from GitHub")


async def _get(client: httpx.AsyncClient, path: str) -> httpx.Response:
    try:
        return await client.get(f"{settings.GITHUB_API_URL}{path}", headers=_headers())
    except httpx.TransportError as exc:
        logger.warning("GitHub API unreachable: %s", exc)
        raise GitHubError(503, "Failed to connect to GitHub API") from exc


async def fetch_readme(
    owner: str,
    repo: str,
    client: httpx.AsyncClient | None = None,
) -> str | None:
    """
    Return the README text of owner/repo, or None if it has no README.

    Raises:
        GitHubError: Repository missing, rate-limited, forbidden, or unreachable.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as owned_client:
            return await fetch_readme(owner, repo, owned_client)

    response = await _get(client, f"/repos/{owner}/{repo}/readme")
    if response.status_code == 200:
        return response.text
    if response.status_code != 404:
        _raise_for_status(response)

    # README 404, so distinguish a missing README from a missing repository
    repo_response = await _get(client, f"/repos/{owner}/{repo}")
    if repo_response.status_code == 404:
        raise GitHubError(404, "Repository not found")
    if repo_response.status_code != 200:
        _raise_for_status(repo_response)
    return None
