"""
Updater - update lifecycle state machine

Owns the cache, resolver, download coordinator and installation orchestrator,
and enforces the allowed state sequence:

    IDLE -> CHECKING_FOR_UPDATES -> IDLE
    IDLE -> DOWNLOADING -> IDLE
    IDLE -> INSTALLING -> IDLE

ROLLING_BACK is reserved; no operation enters it.

Example:
    updater = Updater("octocat", "hello-world", current_version="1.0.0")

    cycle = await updater.check_for_updates()
    if cycle.update_available and not cycle.downloaded:
        async for event in updater.download_update(cycle):
            print(event)

    async for event in updater.install_update(cycle):
        print(event)
    # the host exits now; the handoff applies the update and relaunches it
"""

import logging
import os
import time
from contextlib import aclosing
from pathlib import Path
from typing import AsyncIterator, Callable

from github_updater import __version__
from github_updater.core.config import UpdaterSettings
from github_updater.core.exceptions import InvalidVersion, UpdaterBusy
from github_updater.core.paths import (
    get_app_data_dir,
    get_download_dir,
    get_handoff_script_path,
    get_target_executable,
    get_update_dir,
)
from github_updater.update.archive import ArchiveHandler, ZipArchiveHandler
from github_updater.update.cache import UpdateCache
from github_updater.update.checker import GitHubReleaseSource, ReleaseResolver, ReleaseSource
from github_updater.update.downloader import DownloadCoordinator, HttpxTransfer, Transfer
from github_updater.update.installer import (
    InstallationOrchestrator,
    Launcher,
    ensure_handoff_script,
    launch_detached,
)
from github_updater.update.models import (
    DownloadCompleted,
    DownloadEvent,
    DownloadFailed,
    HandoffLaunched,
    InstallationFailed,
    InstallEvent,
    UpdateAvailable,
    UpdateCycle,
    UpdaterEvent,
    UpdaterState,
)
from github_updater.update.version import Version

logger = logging.getLogger(__name__)

EventListener = Callable[[UpdaterEvent], None]

# Legal transitions of the lifecycle
TRANSITIONS: dict[UpdaterState, set[UpdaterState]] = {
    UpdaterState.IDLE: {
        UpdaterState.CHECKING_FOR_UPDATES,
        UpdaterState.DOWNLOADING,
        UpdaterState.INSTALLING,
    },
    UpdaterState.CHECKING_FOR_UPDATES: {UpdaterState.IDLE},
    UpdaterState.DOWNLOADING: {UpdaterState.IDLE},
    UpdaterState.INSTALLING: {UpdaterState.IDLE},
    UpdaterState.ROLLING_BACK: set(),
}


class Updater:
    """
    Self-update client for a host application

    Operational failures of download and install arrive as events; only
    configuration errors, release lookup failures (from check_for_updates) and
    overlapping calls (UpdaterBusy) are raised.
    """

    def __init__(
        self,
        github_owner: str | None = None,
        github_repo: str | None = None,
        token: str | None = None,
        current_version: str | None = None,
        *,
        settings: UpdaterSettings | None = None,
        release_source: ReleaseSource | None = None,
        transfer: Transfer | None = None,
        archive_handler: ArchiveHandler | None = None,
        launcher: Launcher = launch_detached,
        pid_provider: Callable[[], int] = os.getpid,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the updater

        Args:
            github_owner: GitHub user or organization
            github_repo: GitHub repository name
            token: GitHub personal access token
            current_version: Version of the running application (defaults to settings, then package version)
            settings: Complete settings; the positional arguments override its fields
            release_source: Release listing collaborator (default: GitHub REST API)
            transfer: Download collaborator (default: httpx streaming)
            archive_handler: Archive collaborator (default: zip/tar by magic bytes)
            launcher: Detached process launcher
            pid_provider: Pid the handoff waits on
            clock: Monotonic clock for progress ETA

        Raises:
            ConfigurationError: If owner or repository names are invalid
            InvalidVersion: If the current version is malformed
        """
        overrides = {
            key: value
            for key, value in {
                "github_owner": github_owner,
                "github_repo": github_repo,
                "github_token": token,
                "current_version": current_version,
            }.items()
            if value is not None
        }
        if settings is None:
            settings = UpdaterSettings(**overrides)
        else:
            for key, value in overrides.items():
                setattr(settings, key, value)
        self.settings = settings

        self.current_version = Version.parse(settings.current_version or __version__, prefix_tolerant=True)

        self.data_dir = get_app_data_dir(settings.app_name, settings.data_dir)
        self.download_dir = get_download_dir(self.data_dir)
        self.update_dir = get_update_dir(self.data_dir)
        self.handoff_script = get_handoff_script_path(self.data_dir)
        ensure_handoff_script(self.handoff_script)

        self.cache = UpdateCache(self.download_dir, self.update_dir)

        if release_source is None:
            release_source = GitHubReleaseSource(
                api_url=settings.api_url,
                token=settings.token,
                timeout=settings.request_timeout,
                user_agent=settings.app_name,
            )
        self.resolver = ReleaseResolver(
            self.cache,
            release_source,
            settings.github_owner,
            settings.github_repo,
            include_prereleases=settings.include_prereleases,
        )

        if transfer is None:
            transfer = HttpxTransfer(timeout=settings.download_timeout, user_agent=settings.app_name)
        self.downloader = DownloadCoordinator(
            self.cache,
            archive_handler or ZipArchiveHandler(),
            transfer,
            clock=clock,
        )

        self.installer = InstallationOrchestrator(
            self.cache,
            self.handoff_script,
            get_target_executable(settings.target_executable),
            launcher=launcher,
            pid_provider=pid_provider,
        )

        self._state = UpdaterState.IDLE
        self._listeners: list[EventListener] = []

        logger.info(
            f"Updater ready for {settings.github_owner}/{settings.github_repo} "
            f"(current version {self.current_version}, data {self.data_dir})"
        )

    # Configuration

    @property
    def github_owner(self) -> str:
        return self.settings.github_owner

    @github_owner.setter
    def github_owner(self, value: str) -> None:
        self.settings.github_owner = value
        self.resolver.owner = self.settings.github_owner

    @property
    def github_repo(self) -> str:
        return self.settings.github_repo

    @github_repo.setter
    def github_repo(self, value: str) -> None:
        self.settings.github_repo = value
        self.resolver.repo = self.settings.github_repo

    # State

    @property
    def state(self) -> UpdaterState:
        """Current lifecycle state"""
        return self._state

    def _ensure_idle(self, operation: str) -> None:
        if self._state != UpdaterState.IDLE:
            raise UpdaterBusy(operation, self._state.value)

    def _transition(self, new_state: UpdaterState, operation: str) -> None:
        """Move to new_state, rejecting transitions the lifecycle doesn't allow"""
        if new_state not in TRANSITIONS[self._state]:
            raise UpdaterBusy(operation, self._state.value)
        logger.debug(f"Updater state: {self._state.value} -> {new_state.value}")
        self._state = new_state

    def _reset(self) -> None:
        if self._state != UpdaterState.IDLE:
            self._transition(UpdaterState.IDLE, "finish")

    # Events

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """
        Register a listener receiving every event the updater produces

        Listeners run synchronously on the thread that produced the event;
        hosts touching UI state must re-dispatch themselves.

        Returns:
            Callable that unsubscribes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, event: UpdaterEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Event listener failed on {type(event).__name__}")

    # Operations

    async def check_for_updates(self) -> UpdateCycle:
        """
        Check the cache, then the release source, for a newer version

        Returns:
            UpdateCycle: thread it into download_update()/install_update()

        Raises:
            UpdaterBusy: If another operation is in flight
            ReleaseLookupFailed: If the release source fails
        """
        self._transition(UpdaterState.CHECKING_FOR_UPDATES, "check for updates")
        try:
            cycle = await self.resolver.check_for_update(self.current_version)
        finally:
            self._reset()

        if cycle.update_available:
            self._publish(
                UpdateAvailable(
                    current_version=cycle.current_version,
                    latest_version=cycle.latest_version,
                    update_downloaded=cycle.downloaded,
                    changelog=cycle.changelog,
                )
            )
        return cycle

    def is_update_downloaded(self) -> bool:
        """True if a complete downloaded update is waiting to be installed"""
        return self.cache.has_cached_update()

    def download_update(self, cycle: UpdateCycle | None = None) -> AsyncIterator[DownloadEvent]:
        """
        Download the release resolved by check_for_updates()

        Args:
            cycle: Result of check_for_updates(); None yields DownloadFailed(NoUpdateAvailable)

        Returns:
            Async iterator of download events, ending with DownloadCompleted or DownloadFailed

        Raises:
            UpdaterBusy: If another operation is in flight
        """
        self._ensure_idle("download update")
        if cycle is None:
            cycle = UpdateCycle(current_version=self.current_version, latest_version=self.current_version)
        return self._run_download(cycle)

    async def _run_download(self, cycle: UpdateCycle) -> AsyncIterator[DownloadEvent]:
        self._transition(UpdaterState.DOWNLOADING, "download update")
        finished = False
        try:
            async with aclosing(self.downloader.download(cycle)) as events:
                async for event in events:
                    if isinstance(event, (DownloadCompleted, DownloadFailed)):
                        # IDLE before handlers see the terminal event; not reset again afterwards
                        self._reset()
                        finished = True
                    self._publish(event)
                    yield event
        finally:
            if not finished:
                self._reset()

    def install_update(self, cycle: UpdateCycle | None = None) -> AsyncIterator[InstallEvent]:
        """
        Launch the handoff process for the staged update

        Args:
            cycle: Result of check_for_updates(); None builds one from the cache

        Returns:
            Async iterator of install events

        Raises:
            UpdaterBusy: If another operation is in flight
        """
        self._ensure_idle("install update")
        if cycle is None:
            cycle = self._cycle_from_cache()
        return self._run_install(cycle)

    async def _run_install(self, cycle: UpdateCycle) -> AsyncIterator[InstallEvent]:
        self._transition(UpdaterState.INSTALLING, "install update")
        finished = False
        try:
            async with aclosing(self.installer.install(cycle)) as events:
                async for event in events:
                    if isinstance(event, (HandoffLaunched, InstallationFailed)):
                        # IDLE before handlers see the terminal event; not reset again afterwards
                        self._reset()
                        finished = True
                    self._publish(event)
                    yield event
        finally:
            if not finished:
                self._reset()

    def _cycle_from_cache(self) -> UpdateCycle:
        latest = self.current_version
        if self.cache.has_cached_update():
            try:
                latest = self.cache.read_cached_version()
            except InvalidVersion:
                logger.warning(f"Ignoring malformed version marker {self.cache.version_file}")
        return UpdateCycle(
            current_version=self.current_version,
            latest_version=latest,
            changelog=self.cache.read_changelog(),
            downloaded=latest != self.current_version,
        )

    def delete_update_files(self) -> None:
        """
        Delete the cached update (marker, changelog and staged files)

        Raises:
            UpdaterBusy: If another operation is in flight
        """
        self._ensure_idle("delete update files")
        self.cache.clear()

    @property
    def paths(self) -> dict[str, Path]:
        """Resolved on-disk locations"""
        return {
            "data_dir": self.data_dir,
            "download_dir": self.download_dir,
            "update_dir": self.update_dir,
            "handoff_script": self.handoff_script,
            "target_executable": self.installer.target_executable,
        }
