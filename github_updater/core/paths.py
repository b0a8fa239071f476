"""
Dynamic path resolution for the updater.

All updater state lives in a per-application data directory:

    <app data>/
        Download/               version marker, changelog, in-flight download
        Update/                 staged files ready for the handoff process
        InstallUpdate.bat       handoff script (Windows)
        install_update.sh       handoff script (POSIX)

The data directory works regardless of the current working directory or of
running as a frozen PyInstaller executable, where the install directory is
usually not writable.
"""

import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

DOWNLOAD_DIR_NAME = "Download"
UPDATE_DIR_NAME = "Update"
VERSION_FILE_NAME = "Update.version"
CHANGELOG_FILE_NAME = "Update.changelog"


def is_frozen() -> bool:
    """
    Check if running as a frozen PyInstaller executable.

    Returns:
        bool: True if running as frozen executable, False otherwise
    """
    return bool(getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS"))


def is_windows() -> bool:
    """Check if the host runs on Windows"""
    return os.name == "nt"


def get_app_data_dir(app_name: str, override: Path | None = None) -> Path:
    """
    Get the application data directory for updater state.

    Priority order:
    1. Explicit override (settings.data_dir)
    2. GITHUB_UPDATER_DATA environment variable
    3. %APPDATA%/<app_name> on Windows
    4. XDG_DATA_HOME/<app_name> (if XDG_DATA_HOME is set)
    5. ~/.<app_name> (fallback)

    Args:
        app_name: Host application name
        override: Optional explicit directory

    Returns:
        Path: Absolute path to the data directory (created if missing)

    Example:
        >>> get_app_data_dir("my-app")
        PosixPath('/root/.my-app')
    """
    if override is not None:
        data_dir = Path(override).expanduser()
    elif os.environ.get("GITHUB_UPDATER_DATA"):
        data_dir = Path(os.environ["GITHUB_UPDATER_DATA"]).expanduser()
    elif is_windows() and os.environ.get("APPDATA"):
        data_dir = Path(os.environ["APPDATA"]) / app_name
    elif os.environ.get("XDG_DATA_HOME"):
        data_dir = Path(os.environ["XDG_DATA_HOME"]) / app_name
    else:
        data_dir = Path.home() / f".{app_name}"

    data_dir = data_dir.resolve()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_download_dir(data_dir: Path) -> Path:
    """Directory holding the version marker, changelog and raw download"""
    download_dir = data_dir / DOWNLOAD_DIR_NAME
    download_dir.mkdir(parents=True, exist_ok=True)
    return download_dir


def get_update_dir(data_dir: Path) -> Path:
    """Staging directory copied over the installation by the handoff process"""
    update_dir = data_dir / UPDATE_DIR_NAME
    update_dir.mkdir(parents=True, exist_ok=True)
    return update_dir


def get_handoff_script_path(data_dir: Path) -> Path:
    """
    Get the path of the generated handoff script.

    Returns:
        Path: InstallUpdate.bat on Windows, install_update.sh elsewhere
    """
    if is_windows():
        return data_dir / "InstallUpdate.bat"
    return data_dir / "install_update.sh"


def get_target_executable(override: Path | None = None) -> Path:
    """
    Get the executable relaunched after the update is copied.

    Frozen builds relaunch themselves (sys.executable is the bundle). In a
    plain interpreter sys.executable is python itself, so hosts normally pass
    an explicit target.
    """
    if override is not None:
        return Path(override).resolve()
    if not is_frozen():
        logger.warning(
            "No target executable configured and not running frozen; "
            f"the handoff will relaunch the interpreter {sys.executable}"
        )
    return Path(sys.executable).resolve()


__all__ = [
    "DOWNLOAD_DIR_NAME",
    "UPDATE_DIR_NAME",
    "VERSION_FILE_NAME",
    "CHANGELOG_FILE_NAME",
    "is_frozen",
    "is_windows",
    "get_app_data_dir",
    "get_download_dir",
    "get_update_dir",
    "get_handoff_script_path",
    "get_target_executable",
]
