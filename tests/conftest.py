"""
Shared fixtures and fakes for updater tests
"""

import io
import zipfile
from pathlib import Path

import pytest

from github_updater.core.config import UpdaterSettings
from github_updater.update.cache import UpdateCache


def make_zip_bytes(files: dict[str, bytes]) -> bytes:
    """Build an in-memory zip archive"""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def patch_zip_headers(data: bytes, flag_bits: int | None = None, method: int | None = None) -> bytes:
    """Rewrite the flag bits or compression method of every zip entry"""
    patched = bytearray(data)
    for signature, flag_offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        start = patched.find(signature)
        while start != -1:
            if flag_bits is not None:
                patched[start + flag_offset:start + flag_offset + 2] = flag_bits.to_bytes(2, "little")
            if method is not None:
                patched[start + flag_offset + 2:start + flag_offset + 4] = method.to_bytes(2, "little")
            start = patched.find(signature, start + 4)
    return bytes(patched)


def release_json(tag: str, asset_name: str = "app.zip", body: str = "", prerelease: bool = False) -> dict:
    """Minimal GitHub release object"""
    return {
        "tag_name": tag,
        "body": body,
        "prerelease": prerelease,
        "draft": False,
        "published_at": "2026-01-01T00:00:00Z",
        "assets": [
            {
                "name": asset_name,
                "browser_download_url": f"https://github.com/octocat/app/releases/download/{tag}/{asset_name}",
            }
        ],
    }


class FakeReleaseSource:
    """Release source returning canned releases and counting calls"""

    def __init__(self, releases=None, error: Exception | None = None):
        self.releases = releases or []
        self.error = error
        self.calls = []

    async def list_releases(self, owner: str, repo: str) -> list[dict]:
        self.calls.append((owner, repo))
        if self.error is not None:
            raise self.error
        return self.releases


class FakeTransfer:
    """Transfer writing canned bytes in chunks and reporting progress"""

    def __init__(self, payload: bytes = b"", chunks: int = 4, error: Exception | None = None):
        self.payload = payload
        self.chunks = chunks
        self.error = error
        self.urls = []

    async def download_file(self, url: str, destination: Path, progress) -> None:
        self.urls.append(url)
        total = len(self.payload)
        step = max(1, total // self.chunks)
        written = 0
        with open(destination, "wb") as f:
            while written < total:
                chunk = self.payload[written:written + step]
                f.write(chunk)
                written += len(chunk)
                progress(written, total, int(written * 100 / total))
                if self.error is not None:
                    raise self.error


class FakeClock:
    """Monotonic clock advancing a fixed step per call"""

    def __init__(self, step: float = 1.0):
        self.now = 100.0
        self.step = step

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current


class RecordingLauncher:
    """Launcher that records commands instead of starting processes"""

    def __init__(self, error: Exception | None = None):
        self.commands = []
        self.error = error

    def __call__(self, command: list[str]) -> None:
        if self.error is not None:
            raise self.error
        self.commands.append(command)


@pytest.fixture
def cache(tmp_path) -> UpdateCache:
    """Empty update cache in a temp directory"""
    return UpdateCache(tmp_path / "Download", tmp_path / "Update")


@pytest.fixture
def settings(tmp_path) -> UpdaterSettings:
    """Settings isolated in a temp data directory"""
    return UpdaterSettings(
        github_owner="octocat",
        github_repo="app",
        current_version="1.0.0",
        app_name="test-app",
        data_dir=tmp_path / "appdata",
        target_executable=tmp_path / "install" / "app.exe",
    )
