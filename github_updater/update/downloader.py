"""
Update Download Service

Downloads a release asset, reports progress with a time-remaining estimate,
and commits the payload into the update cache.

Events are delivered through an async iterator:

    DownloadStarted -> DownloadProgressed* -> DownloadCompleted | DownloadFailed

Failures never raise out of the iterator; they arrive as DownloadFailed.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import AsyncIterator, Callable, Protocol
from urllib.parse import unquote, urlparse

import httpx

from github_updater.core.exceptions import NoUpdateAvailable, TransferFailed
from github_updater.update.archive import ArchiveHandler
from github_updater.update.cache import UpdateCache
from github_updater.update.models import (
    DownloadCompleted,
    DownloadEvent,
    DownloadFailed,
    DownloadProgressed,
    DownloadStarted,
    UpdateCycle,
)

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT_SECONDS = 300.0
CHUNK_SIZE = 8192
DEFAULT_PAYLOAD_NAME = "update-package"

ProgressCallback = Callable[[int, int, int], None]


class Transfer(Protocol):
    """Protocol for byte-level download primitives"""

    async def download_file(self, url: str, destination: Path, progress: ProgressCallback) -> None:
        """Download url to destination, calling progress(received, total, percent)"""
        ...


class HttpxTransfer:
    """
    Streaming HTTP download with httpx

    Example:
        transfer = HttpxTransfer()
        await transfer.download_file(url, Path("app.zip"), print)
    """

    def __init__(
        self,
        timeout: float = DOWNLOAD_TIMEOUT_SECONDS,
        user_agent: str = "github-updater",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    async def download_file(self, url: str, destination: Path, progress: ProgressCallback) -> None:
        """
        Stream url into destination

        Raises:
            httpx.HTTPError: On connection or HTTP status errors
            OSError: If destination can't be written
        """
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent, "Accept": "application/octet-stream"},
            transport=self._transport,
        ) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()

                total_size = int(response.headers.get("content-length", 0))
                downloaded = 0

                logger.info(f"Download size: {total_size / 1024 / 1024:.2f} MB")

                with open(destination, "wb") as f:
                    async for chunk in response.aiter_bytes(chunk_size=CHUNK_SIZE):
                        f.write(chunk)
                        downloaded += len(chunk)

                        percent = int(downloaded * 100 / total_size) if total_size > 0 else 0
                        progress(downloaded, total_size, min(percent, 100))


def estimate_remaining(elapsed: float, percent: int) -> float | None:
    """
    Estimate seconds left from elapsed time and completion percentage

    remaining = elapsed / percent * (100 - percent)

    Returns:
        Non-negative seconds, or None while percent is 0 (no basis yet)
    """
    if percent <= 0:
        return None
    elapsed = max(0.0, elapsed)
    return max(0.0, elapsed / percent * (100 - min(percent, 100)))


def payload_file_name(url: str, asset_name: str | None = None) -> str:
    """File name for a downloaded asset, never a path"""
    name = asset_name or unquote(urlparse(url).path.rsplit("/", 1)[-1])
    name = Path(name.replace("\\", "/")).name
    if name in ("", ".", ".."):
        return DEFAULT_PAYLOAD_NAME
    return name


_DONE = object()


class DownloadCoordinator:
    """
    Drive a single download and stage the result

    Example:
        coordinator = DownloadCoordinator(cache, ZipArchiveHandler(), HttpxTransfer())
        async for event in coordinator.download(cycle):
            print(event)
    """

    def __init__(
        self,
        cache: UpdateCache,
        archive_handler: ArchiveHandler,
        transfer: Transfer,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the coordinator

        Args:
            cache: Update cache receiving the payload
            archive_handler: Decides whether the payload is extracted or moved
            transfer: Byte-level download primitive
            clock: Monotonic time source for elapsed/ETA
        """
        self.cache = cache
        self.archive_handler = archive_handler
        self.transfer = transfer
        self.clock = clock

    async def download(self, cycle: UpdateCycle) -> AsyncIterator[DownloadEvent]:
        """
        Download the release of cycle and commit it to the cache

        Args:
            cycle: Result of a prior update check

        Yields:
            DownloadStarted, DownloadProgressed..., then DownloadCompleted or DownloadFailed
        """
        release = cycle.release
        if release is None:
            logger.warning("Download requested without a resolved release")
            yield DownloadFailed(NoUpdateAvailable())
            return

        if not release.asset_url:
            logger.error(f"Release {release.tag} has no downloadable asset")
            yield DownloadFailed(TransferFailed(f"Release {release.tag} has no downloadable asset"))
            return

        destination = self.cache.download_dir / payload_file_name(release.asset_url, release.asset_name)
        partial = destination.with_name(destination.name + ".part")

        yield DownloadStarted(release.version)
        logger.info(f"Downloading update {release.version} from {release.asset_url}")

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        start = self.clock()

        def on_progress(received: int, total: int, percent: int) -> None:
            # Transports may report from a worker thread
            elapsed = max(0.0, self.clock() - start)
            event = DownloadProgressed(
                bytes_received=received,
                bytes_total=total,
                percent=percent,
                elapsed=elapsed,
                remaining=estimate_remaining(elapsed, percent),
            )
            loop.call_soon_threadsafe(queue.put_nowait, event)

        task = asyncio.create_task(self.transfer.download_file(release.asset_url, partial, on_progress))
        task.add_done_callback(lambda _: loop.call_soon_threadsafe(queue.put_nowait, _DONE))

        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                yield item
        finally:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                partial.unlink(missing_ok=True)
                logger.info("Download abandoned, partial file removed")

        error = task.exception()
        if error is not None:
            partial.unlink(missing_ok=True)
            logger.error(f"Download failed: {error}")
            yield DownloadFailed(TransferFailed(f"Download failed: {error}", cause=error))
            return

        try:
            partial.replace(destination)
            await asyncio.to_thread(
                self.cache.write,
                release.version,
                cycle.changelog or release.changelog,
                destination,
                self.archive_handler,
            )
        except Exception as e:
            logger.error(f"Failed to stage update {release.version}: {e}")
            destination.unlink(missing_ok=True)
            yield DownloadFailed(TransferFailed(f"Failed to stage update: {e}", cause=e))
            return

        logger.info(f"Download complete: {release.version}")
        yield DownloadCompleted(
            current_version=cycle.current_version,
            latest_version=release.version,
            changelog=cycle.changelog or release.changelog,
        )
