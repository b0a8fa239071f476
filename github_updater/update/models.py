"""
Update data models and events
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from github_updater.core.exceptions import UpdaterError
from github_updater.update.version import Version


class UpdaterState(str, Enum):
    """Lifecycle state of the updater"""

    IDLE = "idle"
    CHECKING_FOR_UPDATES = "checking_for_updates"
    DOWNLOADING = "downloading"
    INSTALLING = "installing"
    ROLLING_BACK = "rolling_back"  # Reserved, nothing transitions here yet


@dataclass(frozen=True)
class Release:
    """
    A published release selected by the resolver

    Attributes:
        tag: Raw tag name (e.g., "v1.2.0")
        version: Parsed tag
        changelog: Release body text
        asset_url: Download URL of the first asset, if any
        asset_name: File name of the first asset
        prerelease: GitHub prerelease flag
        published_at: ISO timestamp from the API
    """

    tag: str
    version: Version
    changelog: str = ""
    asset_url: str | None = None
    asset_name: str | None = None
    prerelease: bool = False
    published_at: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any], version: Version) -> "Release":
        """Build from a GitHub release JSON object"""
        assets = data.get("assets") or []
        first_asset = assets[0] if assets else {}
        return cls(
            tag=data.get("tag_name", ""),
            version=version,
            changelog=data.get("body") or "",
            asset_url=first_asset.get("browser_download_url") or first_asset.get("url"),
            asset_name=first_asset.get("name"),
            prerelease=bool(data.get("prerelease", False)),
            published_at=data.get("published_at"),
        )


@dataclass(frozen=True)
class UpdateCycle:
    """
    Result of one update check, threaded into download and install

    Attributes:
        current_version: Version of the running application
        latest_version: Newest version found (equals current if none)
        release: Release to download, None when resolved from cache or nothing newer
        changelog: Changelog of latest_version
        downloaded: True if latest_version came from the local cache
    """

    current_version: Version
    latest_version: Version
    release: Release | None = None
    changelog: str = ""
    downloaded: bool = False

    @property
    def update_available(self) -> bool:
        return self.latest_version > self.current_version


# ==============================================================================
# Events
# ==============================================================================


@dataclass(frozen=True)
class UpdateAvailable:
    """A newer version was found (from the cache or the release source)"""

    current_version: Version
    latest_version: Version
    update_downloaded: bool
    changelog: str = ""


@dataclass(frozen=True)
class DownloadStarted:
    """The transfer of version started"""

    version: Version


@dataclass(frozen=True)
class DownloadProgressed:
    """
    One progress tick of the transfer

    Attributes:
        bytes_received: Bytes written so far
        bytes_total: Expected size (0 if the server sent no length)
        percent: Integer percentage 0-100
        elapsed: Seconds since the transfer started
        remaining: Estimated seconds left, None while percent is 0
    """

    bytes_received: int
    bytes_total: int
    percent: int
    elapsed: float
    remaining: float | None

    @property
    def received_text(self) -> str:
        return format_bytes(self.bytes_received)

    @property
    def total_text(self) -> str:
        return format_bytes(self.bytes_total)

    @property
    def elapsed_text(self) -> str:
        return format_duration(self.elapsed)

    @property
    def remaining_text(self) -> str:
        if self.remaining is None:
            return ""
        return format_duration(self.remaining)


@dataclass(frozen=True)
class DownloadCompleted:
    """Payload downloaded and staged"""

    current_version: Version
    latest_version: Version
    changelog: str = ""


@dataclass(frozen=True)
class DownloadFailed:
    """Terminal download failure, error carries the cause"""

    error: UpdaterError

    @property
    def message(self) -> str:
        return error_message(self.error)


@dataclass(frozen=True)
class InstallationStarted:
    """Handoff process is about to be launched"""

    current_version: Version
    latest_version: Version
    changelog: str = ""


@dataclass(frozen=True)
class InstallationFailed:
    """Install could not proceed or the handoff failed to launch"""

    error: UpdaterError

    @property
    def message(self) -> str:
        return error_message(self.error)


@dataclass(frozen=True)
class HandoffLaunched:
    """The detached handoff process was started"""

    args: tuple[str, ...] = ()


DownloadEvent = Union[DownloadStarted, DownloadProgressed, DownloadCompleted, DownloadFailed]
InstallEvent = Union[InstallationStarted, InstallationFailed, HandoffLaunched]
UpdaterEvent = Union[UpdateAvailable, DownloadEvent, InstallEvent]


# ==============================================================================
# Formatting helpers
# ==============================================================================


def error_message(error: UpdaterError) -> str:
    """Plain message of an updater error, without component or hint"""
    return getattr(error, "message", None) or str(error)


def format_bytes(num_bytes: int) -> str:
    """
    Render a byte count as kB or MB

    Example:
        >>> format_bytes(512_000)
        '512 kB'
        >>> format_bytes(1_250_000)
        '1.25 MB'
    """
    if num_bytes >= 1_000_000:
        return f"{num_bytes / 1_000_000:.2f} MB"
    return f"{num_bytes // 1000:,} kB"


def format_duration(seconds: float) -> str:
    """
    Render seconds as "1 hours 2 min 3 sec", omitting zero hours/minutes

    Example:
        >>> format_duration(3723)
        '1 hours 2 min 3 sec'
        >>> format_duration(4.6)
        '4 sec'
    """
    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)

    parts = []
    if hours > 0:
        parts.append(f"{hours} hours")
    if minutes > 0:
        parts.append(f"{minutes} min")
    parts.append(f"{secs} sec")
    return " ".join(parts)
