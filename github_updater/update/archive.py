"""
Archive handling for downloaded payloads

Payloads are classified by their leading magic bytes, never by file name:
release assets are frequently named without an extension or with a misleading
one. Zip and tar (plain, gzip, bzip2, xz) archives are extracted; anything else
is staged as a single opaque file.
"""

import logging
import tarfile
import zipfile
import zlib
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

ZIP_MAGIC = (b"PK\x03\x04", b"PK\x05\x06")  # local file header, empty archive
GZIP_MAGIC = b"\x1f\x8b"
BZIP2_MAGIC = b"BZh"
XZ_MAGIC = b"\xfd7zXZ\x00"
TAR_USTAR_OFFSET = 257


class ArchiveHandler(Protocol):
    """Protocol for archive primitives used when staging a payload"""

    def is_archive(self, path: Path) -> bool:
        """Return True if path is a valid archive this handler can extract"""
        ...

    def extract_all(self, path: Path, destination: Path) -> None:
        """Extract every member of the archive into destination"""
        ...


def sniff_archive_type(path: Path) -> str | None:
    """
    Identify an archive format from its magic bytes

    Returns:
        "zip", "tar" or None
    """
    with open(path, "rb") as f:
        header = f.read(512)

    if header.startswith(ZIP_MAGIC):
        return "zip"
    if header.startswith((GZIP_MAGIC, BZIP2_MAGIC, XZ_MAGIC)):
        return "tar"
    if header[TAR_USTAR_OFFSET:TAR_USTAR_OFFSET + 5] == b"ustar":
        return "tar"
    return None


class ZipArchiveHandler:
    """
    Default archive primitive backed by zipfile and tarfile

    Example:
        handler = ZipArchiveHandler()
        if handler.is_archive(payload):
            handler.extract_all(payload, staging_dir)
    """

    def is_archive(self, path: Path) -> bool:
        """
        Check that path carries archive magic bytes and passes an integrity check

        A compressed single file (e.g. app.gz that is not a tarball) is not an archive.
        """
        path = Path(path)
        if not path.is_file():
            return False

        kind = sniff_archive_type(path)
        try:
            if kind == "zip":
                with zipfile.ZipFile(path) as zf:
                    bad_member = zf.testzip()
                if bad_member is not None:
                    logger.warning(f"Corrupt member in zip payload: {bad_member}")
                    return False
                return True
            if kind == "tar":
                with tarfile.open(path) as tf:
                    tf.getmembers()
                return True
        except (
            zipfile.BadZipFile,
            tarfile.TarError,
            EOFError,
            OSError,
            RuntimeError,  # encrypted member; NotImplementedError for Deflate64
            zlib.error,
        ) as e:
            logger.warning(f"Payload looks like a {kind} archive but can't be read: {e}")
        return False

    def extract_all(self, path: Path, destination: Path) -> None:
        """
        Extract all members into destination, overwriting existing files

        Raises:
            ValueError: If a member would land outside destination
        """
        path = Path(path)
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)

        if sniff_archive_type(path) == "zip":
            with zipfile.ZipFile(path) as zf:
                for member in zf.namelist():
                    _ensure_within(destination, member)
                zf.extractall(destination)
        else:
            with tarfile.open(path) as tf:
                for member in tf.getmembers():
                    _ensure_within(destination, member.name)
                tf.extractall(destination, filter="data")

        logger.info(f"Extracted {path.name} into {destination}")


def _ensure_within(destination: Path, member_name: str) -> None:
    """Reject archive members that escape the destination directory"""
    root = destination.resolve()
    target = (destination / member_name).resolve()
    if target != root and root not in target.parents:
        raise ValueError(f"Archive member escapes destination: {member_name}")
