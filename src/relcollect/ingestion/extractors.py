"""Metadata and content extraction helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal


@dataclass(frozen=True, slots=True)
class FileMetadata:
    """Filesystem metadata gathered for a single file."""

    file_name: str
    file_extension: str
    directory_path: str
    size_bytes: int
    created_at: datetime
    modified_at: datetime
    accessed_at: datetime


def path_text(path: str | os.PathLike[str]) -> str:
    """Return path as text that any database encoding accepts.

    Bytes that are not valid UTF-8 (surrogate-escaped by the filesystem codec)
    are rendered as backslash escapes such as ``\\xe9``.
    """
    return os.fsencode(path).decode("utf-8", "backslashreplace")


def _timestamp(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


class MetadataExtractor:
    """Extract stat metadata and text content for a file."""

    def __init__(
        self,
        *,
        follow_symlinks: bool = False,
        decode_errors: Literal["replace", "strict"] = "replace",
    ) -> None:
        self.follow_symlinks = follow_symlinks
        self.decode_errors = decode_errors

    def extract(self, path: Path) -> FileMetadata:
        """Return metadata for the file at path.

        Args:
            path: Path to the file being processed.

        Returns:
            FileMetadata: Name, location, size, and timestamps of the file.

        Raises:
            OSError: If the file cannot be stat'ed.
            ValueError: If a timestamp cannot be represented.
        """
        stat = os.stat(path, follow_symlinks=self.follow_symlinks)
        # st_birthtime only exists on some platforms; st_ctime is the closest stand-in.
        created = getattr(stat, "st_birthtime", stat.st_ctime)
        return FileMetadata(
            file_name=path_text(path.name),
            file_extension=path_text(path.suffix),
            directory_path=path_text(path.parent),
            size_bytes=stat.st_size,
            created_at=_timestamp(created),
            modified_at=_timestamp(stat.st_mtime),
            accessed_at=_timestamp(stat.st_atime),
        )

    def read_text(self, path: Path) -> str:
        """Return the file content decoded as UTF-8 with any byte order mark removed.

        Raises:
            OSError: If the file cannot be opened or read.
            UnicodeDecodeError: If decoding is strict and the bytes are not UTF-8.
            MemoryError: If the content does not fit in memory.
        """
        with path.open("r", encoding="utf-8-sig", errors=self.decode_errors, newline="") as fh:
            return fh.read()


__all__ = ["FileMetadata", "MetadataExtractor", "path_text"]
