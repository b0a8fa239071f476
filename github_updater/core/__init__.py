"""
Core module - Configuration, paths and the exception hierarchy

Provides foundational components used across the updater.
"""

from github_updater.core.config import UpdaterSettings, get_settings, setup_logging

__all__ = [
    "UpdaterSettings",
    "get_settings",
    "setup_logging",
]
