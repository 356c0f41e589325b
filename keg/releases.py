"""Upstream release lookups for `keg outdated`."""

import logging
import re
from urllib.parse import urlparse

import httpx

from .errors import ReleaseCheckError

logger = logging.getLogger(__name__)

_NUMERIC = re.compile(r"^(\d+)\.(\d+)\.(\d+)")


def github_repository(homepage: str | None) -> tuple[str, str] | None:
    """Extract (owner, repo) from a github.com homepage URL."""
    if not homepage:
        return None
    parsed = urlparse(homepage)
    if parsed.netloc.lower() not in ("github.com", "www.github.com"):
        return None
    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 2:
        return None
    repo = parts[1][:-4] if parts[1].endswith(".git") else parts[1]
    return parts[0], repo


def _version_tuple(version: str) -> tuple[int, int, int] | None:
    match = _NUMERIC.match(version.strip().lstrip("v"))
    if match is None:
        return None
    return tuple(int(part) for part in match.groups())


def is_newer(latest: str, current: str) -> bool:
    """True if latest is a higher MAJOR.MINOR.PATCH than current.

    Unparseable versions fall back to a plain inequality check.
    """
    latest_tuple = _version_tuple(latest)
    current_tuple = _version_tuple(current)
    if latest_tuple is None or current_tuple is None:
        return latest.lstrip("v") != current.lstrip("v")
    return latest_tuple > current_tuple


class LatestReleaseChecker:
    """Queries the GitHub releases API for the latest tag of a repository."""

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.api_url = api_url.rstrip("/")
        self.client = client
        self.timeout = timeout

    async def _get(self, url: str) -> httpx.Response:
        headers = {"Accept": "application/vnd.github+json"}
        if self.client is not None:
            return await self.client.get(url, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await client.get(url, headers=headers)

    async def latest_version(self, owner: str, repo: str) -> str:
        """Return the latest release tag without its "v" prefix.

        Raises:
            ReleaseCheckError: If the API cannot be reached or returns no tag
        """
        url = f"{self.api_url}/repos/{owner}/{repo}/releases/latest"
        try:
            response = await self._get(url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ReleaseCheckError(f"Failed to check latest version of {owner}/{repo}: {e}") from e

        tag = data.get("tag_name") if isinstance(data, dict) else None
        if not tag:
            raise ReleaseCheckError(f"No release tag found for {owner}/{repo}")
        logger.debug(f"Latest release of {owner}/{repo}: {tag}")
        return tag[1:] if tag.startswith("v") else tag
