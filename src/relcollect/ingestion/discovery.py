"""File discovery utilities."""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Iterator

from relcollect.cancellation import CancellationToken
from relcollect.config.models import DEFAULT_MAX_CONTENT_SIZE_BYTES
from relcollect.errors import NotFoundError, PerFileError, ValidationError

from .detectors import ContentClassifier, HashComputer
from .extractors import MetadataExtractor, path_text
from .models import FileRecord

LOGGER = logging.getLogger(__name__)


class FileDiscoverer:
    """Walk a directory tree and produce a FileRecord for every regular file."""

    def __init__(
        self,
        *,
        classifier: ContentClassifier | None = None,
        hasher: HashComputer | None = None,
        extractor: MetadataExtractor | None = None,
        follow_symlinks: bool = False,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self.classifier = classifier or ContentClassifier()
        self.hasher = hasher or HashComputer()
        self.extractor = extractor or MetadataExtractor(follow_symlinks=follow_symlinks)
        self.follow_symlinks = follow_symlinks
        self.cancel_token = cancel_token

    def discover(
        self,
        run_id: uuid.UUID,
        root_path: str | os.PathLike[str],
        max_content_size_bytes: int | None = None,
    ) -> Iterator[FileRecord]:
        """Validate the root and return a lazy iterator of file records beneath it.

        Args:
            run_id: Identifier stamped on every record.
            root_path: Directory to scan recursively.
            max_content_size_bytes: Files at or above this size are not read.

        Returns:
            Iterator[FileRecord]: One record per file, in traversal order.

        Raises:
            ValidationError: If the root path is blank or not a directory, or the
                size cap is not positive.
            NotFoundError: If the root path does not exist.
        """
        if root_path is None or not str(root_path).strip():
            raise ValidationError("Root path must not be empty.")
        if max_content_size_bytes is None:
            max_content_size_bytes = DEFAULT_MAX_CONTENT_SIZE_BYTES
        if max_content_size_bytes <= 0:
            raise ValidationError("Maximum content size must be a positive number of bytes.")

        root = Path(os.fspath(root_path)).expanduser()
        if not root.exists():
            raise NotFoundError(f"Directory not found: {root}")
        if not root.is_dir():
            raise ValidationError(f"Root path is not a directory: {root}")

        return self._generate(run_id, root.resolve(), max_content_size_bytes)

    def _generate(self, run_id: uuid.UUID, root: Path, max_size: int) -> Iterator[FileRecord]:
        LOGGER.info("Discovering files under %s", root)
        for path in self._iter_files(root):
            self._check_cancelled()
            yield self.process_file(run_id, path, max_size)

    def process_file(self, run_id: uuid.UUID, path: Path, max_size: int) -> FileRecord:
        """Build the record for a single file; failures degrade into the record itself."""
        try:
            meta = self.extractor.extract(path)
        except (OSError, ValueError, OverflowError) as exc:
            failure = PerFileError(f"Failed to process file: {exc}")
            LOGGER.warning("%s: %s", path, failure)
            return FileRecord(
                run_id=run_id,
                full_path=path_text(path),
                file_name=path_text(path.name),
                file_extension=path_text(path.suffix),
                directory_path=path_text(path.parent),
                error_message=str(failure),
            )

        record = {
            "run_id": run_id,
            "full_path": path_text(path),
            "file_name": meta.file_name,
            "file_extension": meta.file_extension,
            "directory_path": meta.directory_path,
            "file_size_bytes": meta.size_bytes,
            "created_at": meta.created_at,
            "modified_at": meta.modified_at,
            "accessed_at": meta.accessed_at,
        }

        decision = self.classifier.classify(meta.file_extension, meta.size_bytes, max_size)
        if not decision.should_read:
            return FileRecord(**record, error_message=decision.reason)

        try:
            content = self.extractor.read_text(path)
        except (OSError, UnicodeDecodeError, MemoryError) as exc:
            failure = PerFileError(f"Failed to read file content: {exc}")
            LOGGER.debug("%s: %s", path, failure)
            return FileRecord(**record, error_message=str(failure))

        return FileRecord(
            **record,
            content=content,
            content_hash=self.hasher.compute(content),
            is_readable=True,
        )

    def _iter_files(self, root: Path) -> Iterator[Path]:
        """Depth-first walker using os.scandir; unreadable directories are skipped."""
        visited: set[tuple[int, int]] = set()
        stack = [root]
        while stack:
            self._check_cancelled()
            current = stack.pop()

            if self.follow_symlinks:
                try:
                    stat = current.stat()
                except OSError as exc:
                    LOGGER.warning("Skipping %s: %s", current, exc)
                    continue
                key = (stat.st_dev, stat.st_ino)
                if key in visited:
                    LOGGER.debug("Skipping already visited directory %s", current)
                    continue
                visited.add(key)

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as exc:
                LOGGER.warning("Skipping inaccessible directory %s: %s", current, exc)
                continue

            entries.sort(key=lambda e: e.name.lower())

            dirs: list[Path] = []
            files: list[Path] = []
            for entry in entries:
                try:
                    if entry.is_dir(follow_symlinks=self.follow_symlinks):
                        dirs.append(Path(entry.path))
                    elif entry.is_file(follow_symlinks=self.follow_symlinks):
                        files.append(Path(entry.path))
                except OSError as exc:
                    LOGGER.warning("Skipping %s: %s", entry.path, exc)

            # reversed so subdirectories are visited in name order
            stack.extend(reversed(dirs))
            yield from files

    def _check_cancelled(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()


__all__ = ["FileDiscoverer"]
