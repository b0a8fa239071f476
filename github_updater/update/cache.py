"""
Update Cache

On-disk record of a downloaded update:

    Download/Update.version     version marker (written last)
    Download/Update.changelog   release notes
    Update/                     staged payload (extracted archive or raw file)

The marker is the commit point. It is removed before anything else changes and
written only after the staged payload is in place, through a temp file and
os.replace, so an interrupted write never looks like a complete update.
"""

import logging
import os
import shutil
from pathlib import Path

from github_updater.core.paths import CHANGELOG_FILE_NAME, VERSION_FILE_NAME
from github_updater.update.archive import ArchiveHandler
from github_updater.update.version import Version

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".partial"
OLD_SUFFIX = ".old"


class UpdateCache:
    """
    Persisted evidence that a version has been downloaded and staged

    Example:
        cache = UpdateCache(download_dir, update_dir)
        if cache.has_cached_update():
            print(cache.read_cached_version())
    """

    def __init__(self, download_dir: Path, update_dir: Path):
        """
        Initialize the cache

        Args:
            download_dir: Directory holding the marker, changelog and raw downloads
            update_dir: Staging directory handed to the handoff process
        """
        self.download_dir = Path(download_dir)
        self.update_dir = Path(update_dir)
        self.download_dir.mkdir(parents=True, exist_ok=True)
        self.update_dir.mkdir(parents=True, exist_ok=True)

    @property
    def version_file(self) -> Path:
        return self.download_dir / VERSION_FILE_NAME

    @property
    def changelog_file(self) -> Path:
        return self.download_dir / CHANGELOG_FILE_NAME

    def has_staged_files(self) -> bool:
        """True if the staging directory holds at least one entry"""
        if not self.update_dir.is_dir():
            return False
        return any(self.update_dir.iterdir())

    def has_cached_update(self) -> bool:
        """
        Check if a complete downloaded update is waiting to be installed

        Returns:
            bool: True iff the version marker exists and staging is non-empty
        """
        return self.version_file.is_file() and self.has_staged_files()

    def read_cached_version(self) -> Version:
        """
        Read the version marker

        Raises:
            FileNotFoundError: If no marker exists
            InvalidVersion: If the marker content is malformed
        """
        text = self.version_file.read_text(encoding="utf-8")
        return Version.parse(text, prefix_tolerant=True)

    def read_changelog(self) -> str:
        """Changelog of the cached update, empty if none was stored"""
        if not self.changelog_file.is_file():
            return ""
        return self.changelog_file.read_text(encoding="utf-8")

    def write(
        self,
        version: Version,
        changelog: str,
        payload_file: Path,
        archive_handler: ArchiveHandler,
    ) -> None:
        """
        Commit a downloaded payload as the cached update

        The payload is either extracted (archive) or moved (opaque file) into a
        fresh staging directory that replaces Update/ with a directory rename.
        The raw payload does not survive either way.

        Args:
            version: Version of the payload
            changelog: Release notes to keep alongside
            payload_file: Fully downloaded file inside the download directory
            archive_handler: Archive primitive deciding extract vs. move

        Raises:
            OSError: On filesystem failures (cache left without a marker)
            ValueError: If the archive holds unsafe member paths
        """
        payload_file = Path(payload_file)

        # Invalidate first: from here until the marker is rewritten there is no cached update
        self.version_file.unlink(missing_ok=True)

        partial_dir = self.update_dir.with_name(self.update_dir.name + PARTIAL_SUFFIX)
        _remove_path(partial_dir)
        partial_dir.mkdir(parents=True)

        if archive_handler.is_archive(payload_file):
            logger.info(f"Payload {payload_file.name} is an archive, extracting")
            archive_handler.extract_all(payload_file, partial_dir)
            payload_file.unlink(missing_ok=True)
        else:
            logger.info(f"Payload {payload_file.name} is not an archive, staging as-is")
            shutil.move(str(payload_file), str(partial_dir / payload_file.name))

        self._swap_staging(partial_dir)

        _atomic_write_text(self.changelog_file, changelog or "")
        _atomic_write_text(self.version_file, str(version))
        logger.info(f"Cached update {version} committed to {self.update_dir}")

    def _swap_staging(self, partial_dir: Path) -> None:
        """Replace the staging directory with partial_dir using renames"""
        old_dir = self.update_dir.with_name(self.update_dir.name + OLD_SUFFIX)
        _remove_path(old_dir)

        if self.update_dir.exists():
            self.update_dir.rename(old_dir)
        partial_dir.rename(self.update_dir)
        _remove_path(old_dir)

    def clear(self) -> None:
        """
        Delete the marker, the changelog, leftover downloads and all staged files

        Idempotent: missing files are not an error.
        """
        self.version_file.unlink(missing_ok=True)
        self.changelog_file.unlink(missing_ok=True)

        if self.download_dir.is_dir():
            for entry in self.download_dir.iterdir():
                _remove_path(entry)

        if self.update_dir.is_dir():
            for entry in self.update_dir.iterdir():
                _remove_path(entry)
        else:
            self.update_dir.mkdir(parents=True, exist_ok=True)

        for suffix in (PARTIAL_SUFFIX, OLD_SUFFIX):
            _remove_path(self.update_dir.with_name(self.update_dir.name + suffix))

        logger.info("Update files deleted")


def _remove_path(path: Path) -> None:
    """Remove a file or directory tree if it exists"""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def _atomic_write_text(path: Path, text: str) -> None:
    """Write text to path so readers see either the old or the new content"""
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, path)
