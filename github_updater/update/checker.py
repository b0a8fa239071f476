"""
Update Checker Service

Resolves the newest release above the running version, consulting the local
update cache before the GitHub Releases API.
"""

import logging
from typing import Any, Protocol

import httpx

from github_updater.core.exceptions import InvalidVersion, ReleaseLookupFailed
from github_updater.update.cache import UpdateCache
from github_updater.update.models import Release, UpdateCycle
from github_updater.update.version import Version

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
TIMEOUT_SECONDS = 10.0
RELEASES_PER_PAGE = 100


class ReleaseSource(Protocol):
    """Protocol for release listing implementations"""

    async def list_releases(self, owner: str, repo: str) -> list[dict[str, Any]]:
        """Return release objects newest first (GitHub release JSON shape)"""
        ...


class GitHubReleaseSource:
    """
    Release listing backed by the GitHub REST API

    Example:
        source = GitHubReleaseSource(token="ghp_...")
        releases = await source.list_releases("octocat", "hello-world")
    """

    def __init__(
        self,
        api_url: str = GITHUB_API_URL,
        token: str | None = None,
        timeout: float = TIMEOUT_SECONDS,
        user_agent: str = "github-updater",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the release source

        Args:
            api_url: GitHub API base URL (GitHub Enterprise uses a different host)
            token: Personal access token, sent as a bearer token
            timeout: Request timeout in seconds
            user_agent: User-Agent header (required by GitHub)
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self.user_agent,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def list_releases(self, owner: str, repo: str) -> list[dict[str, Any]]:
        """
        List releases of owner/repo, newest first

        Raises:
            ReleaseLookupFailed: On timeout, connection, HTTP or payload errors
        """
        url = f"{self.api_url}/repos/{owner}/{repo}/releases"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=self._headers(),
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                logger.info(f"Checking for updates at {url}")
                response = await client.get(url, params={"per_page": RELEASES_PER_PAGE})
                response.raise_for_status()
                releases = response.json()

        except httpx.TimeoutException as e:
            raise ReleaseLookupFailed(f"Release lookup timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in (401, 403):
                raise ReleaseLookupFailed(
                    f"Release lookup rejected: HTTP {status}",
                    recovery_hint="Check the GitHub token and its repository access",
                ) from e
            if status == 404:
                raise ReleaseLookupFailed(
                    f"Repository {owner}/{repo} not found",
                    recovery_hint="Check the owner and repository names (private repositories need a token)",
                ) from e
            raise ReleaseLookupFailed(f"Release lookup failed: HTTP {status}") from e
        except httpx.HTTPError as e:
            raise ReleaseLookupFailed(f"Release lookup failed: {e}") from e
        except ValueError as e:
            raise ReleaseLookupFailed(f"Release list is not valid JSON: {e}") from e

        if not isinstance(releases, list):
            raise ReleaseLookupFailed(f"Unexpected release list payload: {type(releases).__name__}")

        logger.debug(f"Received {len(releases)} releases for {owner}/{repo}")
        return releases


class ReleaseResolver:
    """
    Find the first release newer than the running version

    The cache is consulted first: when a downloaded update is waiting, the
    answer comes from disk and no request is made.
    """

    def __init__(
        self,
        cache: UpdateCache,
        source: ReleaseSource,
        owner: str,
        repo: str,
        include_prereleases: bool = False,
    ):
        self.cache = cache
        self.source = source
        self.owner = owner
        self.repo = repo
        self.include_prereleases = include_prereleases

    async def check_for_update(self, current_version: Version) -> UpdateCycle:
        """
        Resolve the newest version available for current_version

        Args:
            current_version: Version of the running application

        Returns:
            UpdateCycle: latest_version equals current_version when nothing is newer

        Raises:
            ReleaseLookupFailed: If the release source fails
        """
        if self.cache.has_cached_update():
            return self._check_cache(current_version)

        releases = await self.source.list_releases(self.owner, self.repo)
        release = self._select_release(releases, current_version)

        if release is None:
            logger.info(f"No update available (already on latest version {current_version})")
            return UpdateCycle(current_version=current_version, latest_version=current_version)

        logger.info(f"Update available: {current_version} -> {release.version} ({release.tag})")
        return UpdateCycle(
            current_version=current_version,
            latest_version=release.version,
            release=release,
            changelog=release.changelog,
        )

    def _check_cache(self, current_version: Version) -> UpdateCycle:
        """Answer from the cached download without touching the network"""
        try:
            cached_version = self.cache.read_cached_version()
        except InvalidVersion:
            # Unreadable marker: treat like any other incomplete cache record
            logger.warning(f"Ignoring malformed version marker {self.cache.version_file}")
            return UpdateCycle(current_version=current_version, latest_version=current_version)

        logger.info(f"Found cached update {cached_version} (current {current_version})")

        if cached_version > current_version:
            return UpdateCycle(
                current_version=current_version,
                latest_version=cached_version,
                changelog=self.cache.read_changelog(),
                downloaded=True,
            )

        return UpdateCycle(current_version=current_version, latest_version=current_version)

    def _select_release(self, releases: list[dict[str, Any]], current_version: Version) -> Release | None:
        """First release in source order whose tag parses above current_version"""
        for data in releases:
            tag = data.get("tag_name") or ""

            if data.get("draft"):
                continue
            if data.get("prerelease") and not self.include_prereleases:
                logger.debug(f"Skipping prerelease {tag}")
                continue

            try:
                version = Version.parse(tag, prefix_tolerant=True)
            except InvalidVersion:
                logger.warning(f"Skipping release with unparseable tag {tag!r}")
                continue

            if version > current_version:
                return Release.from_api(data, version)

        return None
