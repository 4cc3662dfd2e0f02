"""Persistence boundary used by the batch loader and pipeline."""

from __future__ import annotations

import uuid
from typing import Protocol, Sequence, runtime_checkable

from relcollect.ingestion.models import DeploymentRecord, FileRecord


@runtime_checkable
class Sink(Protocol):
    """Destination for file batches and deployment records.

    Implementations own connection and transaction lifetime: every call to
    ``insert_batch`` commits all of its records or none of them.
    """

    def initialize_schema(self) -> None:
        """Create the storage structures if they do not exist."""
        ...

    def test_connection(self) -> bool:
        """Return True when the store is reachable."""
        ...

    def insert_batch(self, records: Sequence[FileRecord]) -> int:
        """Persist records atomically and return how many were inserted."""
        ...

    def insert_deployment_record(self, record: DeploymentRecord) -> int:
        """Persist the deployment record for a run and return 0 or 1."""
        ...

    def deployment_records(self, run_id: uuid.UUID) -> list[DeploymentRecord]:
        """Return deployment records for a run, newest first."""
        ...

    def file_records(self, run_id: uuid.UUID) -> list[FileRecord]:
        """Return file records for a run ordered by path."""
        ...

    def count_files(self, run_id: uuid.UUID) -> int:
        """Return the number of file records stored for a run."""
        ...


__all__ = ["Sink"]
