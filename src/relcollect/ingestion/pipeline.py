"""High-level collection pipeline orchestration."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional

from relcollect.cancellation import CancellationToken
from relcollect.config.models import DEFAULT_BATCH_SIZE, CollectorConfig
from relcollect.errors import SinkError
from relcollect.storage.base import Sink
from relcollect.storage.loader import BatchLoader, ProgressCallback, check_batch_size

from .detectors import BINARY_FILE_REASON, FILE_TOO_LARGE_REASON, ContentClassifier, HashComputer
from .discovery import FileDiscoverer
from .extractors import MetadataExtractor
from .models import CollectionResult, FileRecord, RunContext

LOGGER = logging.getLogger(__name__)

_SKIP_REASONS = frozenset({BINARY_FILE_REASON, FILE_TOO_LARGE_REASON})


class CollectionPipeline:
    """Coordinate schema setup, deployment recording, discovery, and batch loading."""

    def __init__(
        self,
        discoverer: FileDiscoverer,
        sink: Sink,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_content_size_bytes: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.discoverer = discoverer
        self.sink = sink
        self.batch_size = batch_size
        self.max_content_size_bytes = max_content_size_bytes
        self.cancel_token = cancel_token
        self.on_progress = on_progress

    @classmethod
    def from_config(
        cls,
        config: CollectorConfig,
        sink: Sink,
        *,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> "CollectionPipeline":
        """Build a pipeline whose components follow the loaded configuration."""
        processing = config.processing
        discoverer = FileDiscoverer(
            classifier=ContentClassifier(processing.binary_extensions),
            hasher=HashComputer(),
            extractor=MetadataExtractor(
                follow_symlinks=processing.follow_symlinks,
                decode_errors=processing.decode_errors,
            ),
            follow_symlinks=processing.follow_symlinks,
            cancel_token=cancel_token,
        )
        return cls(
            discoverer,
            sink,
            batch_size=config.database.batch_size,
            max_content_size_bytes=processing.max_content_size_bytes,
            cancel_token=cancel_token,
            on_progress=on_progress,
        )

    def run(self, root: str | os.PathLike[str], context: RunContext) -> CollectionResult:
        """Scan root and persist its files under the run described by context.

        Validation of the root and batch size happens before anything is written.

        Raises:
            ValidationError: If the root path or batch size is invalid.
            NotFoundError: If the root path does not exist.
            SinkError: If the schema, deployment record, or a batch cannot be written.
            CancellationError: If the run is cancelled.
        """
        result = CollectionResult(run_id=context.run_id, root=str(root))
        loader = BatchLoader(self.sink, cancel_token=self.cancel_token, on_progress=self.on_progress)

        records = self.discoverer.discover(context.run_id, root, self.max_content_size_bytes)
        check_batch_size(self.batch_size)

        self.sink.initialize_schema()
        if context.deployment is not None:
            try:
                result.deployment_recorded = (
                    self.sink.insert_deployment_record(context.deployment) > 0
                )
            except SinkError:
                raise
            except Exception as exc:
                raise SinkError(f"Failed to record deployment release: {exc}") from exc

        try:
            result.inserted = loader.load_all(self._tally(records, result), self.batch_size)
        finally:
            result.batches = loader.batches_flushed
            result.finished_at = datetime.now(timezone.utc)

        LOGGER.info(
            "Run %s stored %d of %d discovered files in %d batches",
            context.run_id,
            result.inserted,
            result.discovered,
            result.batches,
        )
        return result

    @staticmethod
    def _tally(records: Iterable[FileRecord], result: CollectionResult) -> Iterator[FileRecord]:
        for record in records:
            result.discovered += 1
            if record.is_readable:
                result.readable += 1
            elif record.error_message in _SKIP_REASONS:
                result.skipped += 1
            else:
                result.failed += 1
            yield record


__all__ = ["CollectionPipeline"]
