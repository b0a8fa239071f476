"""
Tests for release lookup and resolution
"""

import asyncio

import httpx
import pytest

from github_updater.core.exceptions import ReleaseLookupFailed
from github_updater.update.archive import ZipArchiveHandler
from github_updater.update.checker import GitHubReleaseSource, ReleaseResolver
from github_updater.update.version import Version
from tests.conftest import FakeReleaseSource, release_json


def resolve(resolver, current="1.0.0"):
    return asyncio.run(resolver.check_for_update(Version.parse(current)))


class TestGitHubReleaseSource:
    """Tests for the httpx-backed GitHub client"""

    def test_lists_releases_with_bearer_token(self):
        """Test the request URL, headers and returned payload"""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["accept"] = request.headers.get("Accept")
            return httpx.Response(200, json=[release_json("v1.2.0")])

        source = GitHubReleaseSource(token="secret", transport=httpx.MockTransport(handler))
        releases = asyncio.run(source.list_releases("octocat", "app"))

        assert releases[0]["tag_name"] == "v1.2.0"
        assert seen["url"].startswith("https://api.github.com/repos/octocat/app/releases")
        assert seen["auth"] == "Bearer secret"
        assert seen["accept"] == "application/vnd.github+json"

    def test_no_token_sends_no_authorization(self):
        """Test that anonymous access omits the header"""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=[])

        source = GitHubReleaseSource(transport=httpx.MockTransport(handler))
        asyncio.run(source.list_releases("octocat", "app"))

        assert seen["auth"] is None

    @pytest.mark.parametrize("status", [401, 403, 404, 500])
    def test_http_errors_raise_release_lookup_failed(self, status):
        """Test that HTTP failures propagate as ReleaseLookupFailed"""
        source = GitHubReleaseSource(transport=httpx.MockTransport(lambda request: httpx.Response(status)))

        with pytest.raises(ReleaseLookupFailed) as exc_info:
            asyncio.run(source.list_releases("octocat", "app"))

        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    def test_connection_error(self):
        """Test that transport errors propagate as ReleaseLookupFailed"""

        def handler(request):
            raise httpx.ConnectError("no route to host", request=request)

        source = GitHubReleaseSource(transport=httpx.MockTransport(handler))

        with pytest.raises(ReleaseLookupFailed):
            asyncio.run(source.list_releases("octocat", "app"))

    def test_invalid_json(self):
        """Test that a non-JSON body is a lookup failure"""
        source = GitHubReleaseSource(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        )

        with pytest.raises(ReleaseLookupFailed):
            asyncio.run(source.list_releases("octocat", "app"))

    def test_unexpected_payload_shape(self):
        """Test that an object instead of a list is a lookup failure"""
        source = GitHubReleaseSource(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"message": "x"}))
        )

        with pytest.raises(ReleaseLookupFailed):
            asyncio.run(source.list_releases("octocat", "app"))


class TestReleaseResolver:
    """Tests for ReleaseResolver.check_for_update"""

    def test_selects_first_newer_release(self, cache):
        """Test that source order wins (newest first)"""
        source = FakeReleaseSource([release_json("v1.2.0", body="notes"), release_json("v1.1.0")])
        resolver = ReleaseResolver(cache, source, "octocat", "app")

        cycle = resolve(resolver)

        assert cycle.latest_version == Version.parse("1.2.0")
        assert cycle.update_available is True
        assert cycle.downloaded is False
        assert cycle.release.tag == "v1.2.0"
        assert cycle.release.asset_name == "app.zip"
        assert cycle.changelog == "notes"
        assert source.calls == [("octocat", "app")]

    def test_no_newer_release_returns_current(self, cache):
        """Test that no newer release is not an error"""
        source = FakeReleaseSource([release_json("v1.0.0"), release_json("v0.9.0")])
        resolver = ReleaseResolver(cache, source, "octocat", "app")

        cycle = resolve(resolver)

        assert cycle.latest_version == Version.parse("1.0.0")
        assert cycle.update_available is False
        assert cycle.release is None

    def test_empty_release_list(self, cache):
        """Test that a repository without releases resolves to current"""
        resolver = ReleaseResolver(cache, FakeReleaseSource([]), "octocat", "app")
        assert resolve(resolver).update_available is False

    def test_skips_unparseable_tags(self, cache):
        """Test that junk tags are skipped instead of failing the check"""
        source = FakeReleaseSource([release_json("nightly"), release_json("v2.0.0")])
        resolver = ReleaseResolver(cache, source, "octocat", "app")

        assert resolve(resolver).latest_version == Version.parse("2.0.0")

    def test_skips_prereleases_by_default(self, cache):
        """Test that prereleases are ignored unless enabled"""
        source = FakeReleaseSource([release_json("v3.0.0", prerelease=True), release_json("v2.0.0")])

        assert resolve(ReleaseResolver(cache, source, "o", "r")).latest_version == Version.parse("2.0.0")
        assert resolve(ReleaseResolver(cache, source, "o", "r", include_prereleases=True)).latest_version == Version.parse("3.0.0")

    def test_lookup_failure_propagates(self, cache):
        """Test that transport errors reach the caller"""
        resolver = ReleaseResolver(cache, FakeReleaseSource(error=ReleaseLookupFailed("boom")), "o", "r")

        with pytest.raises(ReleaseLookupFailed):
            resolve(resolver)

    def test_cached_update_skips_network(self, cache):
        """Test that a cached newer version answers without calling the source"""
        payload = cache.download_dir / "app.exe"
        payload.write_bytes(b"new")
        cache.write(Version.parse("2.0.0"), "cached notes", payload, ZipArchiveHandler())
        source = FakeReleaseSource([release_json("v3.0.0")])
        resolver = ReleaseResolver(cache, source, "octocat", "app")

        cycle = resolve(resolver)

        assert cycle.latest_version == Version.parse("2.0.0")
        assert cycle.downloaded is True
        assert cycle.changelog == "cached notes"
        assert source.calls == []

    def test_cached_older_version_returns_current_without_network(self, cache):
        """Test that a stale cache (already installed) still skips the network"""
        payload = cache.download_dir / "app.exe"
        payload.write_bytes(b"old")
        cache.write(Version.parse("1.0.0"), "", payload, ZipArchiveHandler())
        source = FakeReleaseSource([release_json("v3.0.0")])
        resolver = ReleaseResolver(cache, source, "octocat", "app")

        cycle = resolve(resolver, current="1.0.0")

        assert cycle.update_available is False
        assert source.calls == []

    def test_malformed_marker_is_ignored(self, cache):
        """Test that a corrupted marker doesn't raise"""
        (cache.update_dir / "app.exe").write_bytes(b"x")
        cache.version_file.write_text("garbage")
        source = FakeReleaseSource([release_json("v3.0.0")])

        cycle = resolve(ReleaseResolver(cache, source, "o", "r"))

        assert cycle.update_available is False
