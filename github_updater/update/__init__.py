"""
Update Management Package

Provides the self-update lifecycle:

- Version parsing and comparison
- Update cache (version marker, changelog, staged payload)
- Release lookup from GitHub Releases, cache first
- Download with progress/ETA events and atomic staging
- Handoff process launch for installation
"""

from github_updater.update.cache import UpdateCache
from github_updater.update.checker import GitHubReleaseSource, ReleaseResolver
from github_updater.update.downloader import DownloadCoordinator, HttpxTransfer
from github_updater.update.installer import InstallationOrchestrator, ensure_handoff_script
from github_updater.update.models import (
    DownloadCompleted,
    DownloadFailed,
    DownloadProgressed,
    DownloadStarted,
    HandoffLaunched,
    InstallationFailed,
    InstallationStarted,
    Release,
    UpdateAvailable,
    UpdateCycle,
    UpdaterState,
)
from github_updater.update.updater import Updater
from github_updater.update.version import Version

__all__ = [
    "Updater",
    "UpdateCache",
    "GitHubReleaseSource",
    "ReleaseResolver",
    "DownloadCoordinator",
    "HttpxTransfer",
    "InstallationOrchestrator",
    "ensure_handoff_script",
    "Release",
    "UpdateCycle",
    "UpdaterState",
    "Version",
    "UpdateAvailable",
    "DownloadStarted",
    "DownloadProgressed",
    "DownloadCompleted",
    "DownloadFailed",
    "InstallationStarted",
    "InstallationFailed",
    "HandoffLaunched",
]
