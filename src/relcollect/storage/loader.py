"""Bounded-memory batching of file records into a sink."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from relcollect.cancellation import CancellationToken
from relcollect.config.models import DEFAULT_BATCH_SIZE
from relcollect.errors import CollectorError, SinkError, ValidationError
from relcollect.ingestion.models import FileRecord

from .base import Sink

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


def check_batch_size(batch_size: int) -> None:
    """Raise ValidationError unless batch_size is a positive integer."""
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise ValidationError(f"Batch size must be a positive integer, got {batch_size!r}.")


class BatchLoader:
    """Group a stream of file records into fixed-size batches and persist each one.

    At most ``batch_size`` records are held in memory. Each flush is a single
    ``Sink.insert_batch`` call, which the sink commits or rolls back as a unit.
    Failures are not retried; the raised error carries the number of records
    committed by earlier batches in its ``committed`` attribute.
    """

    def __init__(
        self,
        sink: Sink,
        *,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.sink = sink
        self.cancel_token = cancel_token
        self.on_progress = on_progress
        self.batches_flushed = 0

    def load_all(self, records: Iterable[FileRecord], batch_size: int = DEFAULT_BATCH_SIZE) -> int:
        """Persist every record from the iterable and return the total inserted.

        Args:
            records: Possibly lazy sequence of file records.
            batch_size: Maximum number of records per flush.

        Returns:
            int: Sum of the counts reported by the sink for each flush.

        Raises:
            ValidationError: If batch_size is not a positive integer.
            SinkError: If a flush fails.
            CancellationError: If cancellation is requested mid-run.
        """
        check_batch_size(batch_size)

        self.batches_flushed = 0
        total = 0
        batch: list[FileRecord] = []
        LOGGER.info("Starting batch insertion with batch size %d", batch_size)

        try:
            for record in records:
                batch.append(record)
                if len(batch) >= batch_size:
                    total += self._flush(batch, total)
                    batch.clear()

            if batch:
                total += self._flush(batch, total)
                batch.clear()
        except CollectorError as exc:
            exc.committed = total
            LOGGER.error("Batch insertion stopped after %d committed records: %s", total, exc)
            raise

        LOGGER.info("Batch insertion completed. Total records inserted: %d", total)
        return total

    def _flush(self, batch: list[FileRecord], committed: int) -> int:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled(committed=committed)

        try:
            inserted = self.sink.insert_batch(batch)
        except SinkError:
            raise
        except Exception as exc:
            raise SinkError(f"Failed to insert batch of {len(batch)} records: {exc}") from exc

        self.batches_flushed += 1
        cumulative = committed + inserted
        LOGGER.info("Processed %d files...", cumulative)
        self._report_progress(cumulative)
        return inserted

    def _report_progress(self, cumulative: int) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(cumulative)
        except Exception:
            LOGGER.warning("Progress callback failed at %d records", cumulative, exc_info=True)


def load_all(
    records: Iterable[FileRecord],
    batch_size: int,
    sink: Sink,
    *,
    cancel_token: Optional[CancellationToken] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> int:
    """Persist records through a one-off BatchLoader and return the total inserted."""
    loader = BatchLoader(sink, cancel_token=cancel_token, on_progress=on_progress)
    return loader.load_all(records, batch_size)


__all__ = ["BatchLoader", "ProgressCallback", "check_batch_size", "load_all"]
