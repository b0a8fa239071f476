"""
Update Installer Service

A running executable can't overwrite itself, so installation is handed off to
a detached script that:

1. waits for the host process (by pid) to exit,
2. copies every staged file over the installation directory,
3. relaunches the target executable.

The script lives in the application data directory and is regenerated whenever
its content drifts from the template below. This module only launches it; it
never waits for the handoff or for the host to exit.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import AsyncIterator, Callable

from github_updater.core.exceptions import InstallationLaunchFailed, NoUpdateStaged
from github_updater.core.paths import is_windows
from github_updater.update.cache import UpdateCache
from github_updater.update.models import (
    HandoffLaunched,
    InstallationFailed,
    InstallationStarted,
    InstallEvent,
    UpdateCycle,
)

logger = logging.getLogger(__name__)

Launcher = Callable[[list[str]], None]

WINDOWS_HANDOFF_SCRIPT = """@echo off
rem Applies a staged update once the host process has exited.
rem Usage: InstallUpdate.bat <pid> <update dir> <target dir> <target executable>
setlocal
set "PID=%~1"
set "UPDATE_DIR=%~2"
set "TARGET_DIR=%~3"
set "TARGET_EXE=%~4"

:wait
tasklist /FI "PID eq %PID%" 2>NUL | find /I "%PID%" >NUL
if not errorlevel 1 (
    timeout /t 1 /nobreak >NUL
    goto wait
)

xcopy "%UPDATE_DIR%\\*" "%TARGET_DIR%\\" /E /H /Y /Q >NUL
if errorlevel 1 exit /b 1
start "" "%TARGET_EXE%"
endlocal
"""

POSIX_HANDOFF_SCRIPT = """#!/bin/sh
# Applies a staged update once the host process has exited.
# Usage: install_update.sh <pid> <update dir> <target dir> <target executable>
PID="$1"
UPDATE_DIR="$2"
TARGET_DIR="$3"
TARGET_EXE="$4"

while kill -0 "$PID" 2>/dev/null; do
    sleep 1
done

cp -R "$UPDATE_DIR"/. "$TARGET_DIR"/ || exit 1
chmod +x "$TARGET_EXE" 2>/dev/null
nohup "$TARGET_EXE" >/dev/null 2>&1 &
"""


def handoff_script_template(windows: bool | None = None) -> str:
    """Expected handoff script content for the host platform"""
    if windows is None:
        windows = is_windows()
    return WINDOWS_HANDOFF_SCRIPT if windows else POSIX_HANDOFF_SCRIPT


def ensure_handoff_script(script_path: Path, windows: bool | None = None) -> bool:
    """
    Write the handoff script if it is missing or differs from the template

    Args:
        script_path: Destination of the script
        windows: Force the Windows/POSIX template (defaults to the host platform)

    Returns:
        bool: True if the script was (re)written
    """
    template = handoff_script_template(windows)
    script_path = Path(script_path)

    if script_path.is_file():
        try:
            current = script_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            current = None
        if current == template:
            return False

    script_path.parent.mkdir(parents=True, exist_ok=True)
    # newline="" keeps the template's line endings byte-identical on every platform
    with open(script_path, "w", encoding="utf-8", newline="") as f:
        f.write(template)
    if not (is_windows() if windows is None else windows):
        script_path.chmod(0o755)

    logger.info(f"Handoff script written to {script_path}")
    return True


def launch_detached(command: list[str]) -> None:
    """
    Start command in its own session/process group without waiting

    command[0] is the handoff script; it is run through cmd or sh so the
    script does not need an executable bit or a file association.

    Raises:
        OSError: If the process can't be started
    """
    script, *args = command

    if is_windows():
        creationflags = (
            subprocess.CREATE_NEW_PROCESS_GROUP
            | subprocess.DETACHED_PROCESS
            | subprocess.CREATE_NO_WINDOW
        )
        process = subprocess.Popen(
            ["cmd", "/c", script, *args],
            close_fds=True,
            creationflags=creationflags,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    else:
        process = subprocess.Popen(
            ["/bin/sh", script, *args],
            close_fds=True,
            start_new_session=True,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

    logger.info(f"Handoff process started with PID: {process.pid}")


class InstallationOrchestrator:
    """
    Launch the handoff process for a staged update

    Example:
        orchestrator = InstallationOrchestrator(cache, script_path, Path(sys.executable))
        async for event in orchestrator.install(cycle):
            print(event)
    """

    def __init__(
        self,
        cache: UpdateCache,
        handoff_script: Path,
        target_executable: Path,
        launcher: Launcher = launch_detached,
        pid_provider: Callable[[], int] = os.getpid,
    ):
        """
        Initialize the orchestrator

        Args:
            cache: Update cache holding the staging directory
            handoff_script: Generated handoff script path
            target_executable: Executable relaunched after the copy; its
                directory is the installation directory that gets overwritten
            launcher: Detached process launcher
            pid_provider: Returns the pid the handoff waits on
        """
        self.cache = cache
        self.handoff_script = Path(handoff_script)
        self.target_executable = Path(target_executable)
        self.launcher = launcher
        self.pid_provider = pid_provider

    def handoff_args(self) -> list[str]:
        """Arguments passed to the handoff: pid, staging dir, install dir, executable"""
        return [
            str(self.pid_provider()),
            str(self.cache.update_dir),
            str(self.target_executable.parent),
            str(self.target_executable),
        ]

    async def install(self, cycle: UpdateCycle) -> AsyncIterator[InstallEvent]:
        """
        Start installing the staged update

        Yields:
            InstallationFailed(NoUpdateStaged) if nothing is staged; otherwise
            InstallationStarted followed by HandoffLaunched or InstallationFailed
        """
        if not self.cache.has_staged_files():
            logger.warning("Install requested but no update is staged")
            yield InstallationFailed(NoUpdateStaged())
            return

        changelog = cycle.changelog or self.cache.read_changelog()
        yield InstallationStarted(
            current_version=cycle.current_version,
            latest_version=cycle.latest_version,
            changelog=changelog,
        )

        args = self.handoff_args()

        if not self.handoff_script.is_file():
            logger.error(f"Handoff script not found: {self.handoff_script}")
            yield InstallationFailed(InstallationLaunchFailed(f"Handoff script not found: {self.handoff_script}"))
            return

        logger.info(f"Launching handoff {self.handoff_script} with {args}")
        try:
            self.launcher([str(self.handoff_script), *args])
        except (OSError, subprocess.SubprocessError, ValueError) as e:
            logger.error(f"Update installation failed: {e}")
            yield InstallationFailed(InstallationLaunchFailed(f"Failed to launch handoff: {e}", cause=e))
            return

        logger.info(f"Update to {cycle.latest_version} handed off, it applies after this process exits")
        yield HandoffLaunched(args=tuple(args))
