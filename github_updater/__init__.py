"""
GitHub Updater

Self-update client for desktop applications distributed through GitHub
Releases: check for a newer release, download and stage it, and hand off to a
detached process that swaps the installed files after the host exits.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from github_updater.core.exceptions import (
    ConfigurationError,
    InstallationLaunchFailed,
    InvalidVersion,
    NoUpdateAvailable,
    NoUpdateStaged,
    ReleaseLookupFailed,
    TransferFailed,
    UpdaterBusy,
    UpdaterError,
)
from github_updater.update.models import UpdateCycle, UpdaterState
from github_updater.update.updater import Updater
from github_updater.update.version import Version

__all__ = [
    "Updater",
    "UpdateCycle",
    "UpdaterState",
    "Version",
    "UpdaterError",
    "ConfigurationError",
    "InvalidVersion",
    "ReleaseLookupFailed",
    "NoUpdateAvailable",
    "NoUpdateStaged",
    "TransferFailed",
    "InstallationLaunchFailed",
    "UpdaterBusy",
]
