"""Shared fixtures for relcollect tests."""

from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Sequence

import pytest

from relcollect.ingestion.models import DeploymentRecord, FileRecord


class RecordingSink:
    """In-memory sink that records every flush.

    Args:
        fail_on: 1-based flush number that raises instead of storing.
        shortfall: How many fewer rows each flush reports than it received.
    """

    def __init__(self, fail_on: int | None = None, shortfall: int = 0) -> None:
        self.fail_on = fail_on
        self.shortfall = shortfall
        self.batches: list[list[FileRecord]] = []
        self.deployments: list[DeploymentRecord] = []
        self.schema_initialized = False
        self.calls = 0

    def initialize_schema(self) -> None:
        self.schema_initialized = True

    def test_connection(self) -> bool:
        return True

    def insert_batch(self, records: Sequence[FileRecord]) -> int:
        self.calls += 1
        if self.fail_on is not None and self.calls == self.fail_on:
            raise RuntimeError(f"flush {self.calls} rejected")
        self.batches.append(list(records))
        return max(len(records) - self.shortfall, 0)

    def insert_deployment_record(self, record: DeploymentRecord) -> int:
        self.deployments.append(record)
        return 1

    def deployment_records(self, run_id: uuid.UUID) -> list[DeploymentRecord]:
        return [record for record in self.deployments if record.run_id == run_id]

    def file_records(self, run_id: uuid.UUID) -> list[FileRecord]:
        stored = [record for batch in self.batches for record in batch]
        return sorted(
            (record for record in stored if record.run_id == run_id),
            key=lambda record: record.full_path,
        )

    def count_files(self, run_id: uuid.UUID) -> int:
        return len(self.file_records(run_id))

    @property
    def stored(self) -> list[FileRecord]:
        return [record for batch in self.batches for record in batch]


@pytest.fixture
def run_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_records(run_id: uuid.UUID):
    """Return a factory producing simple unreadable records."""

    def _make(count: int) -> list[FileRecord]:
        return [
            FileRecord(
                run_id=run_id,
                full_path=f"/data/file-{index:04d}.bin",
                file_name=f"file-{index:04d}.bin",
                file_extension=".bin",
                directory_path="/data",
                file_size_bytes=index,
                error_message="Binary file - content not read",
            )
            for index in range(count)
        ]

    return _make


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'collector.db'}"


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME at a temporary directory so configuration stays isolated."""
    directory = tmp_path / "home"
    directory.mkdir()
    monkeypatch.setenv("HOME", str(directory))
    for key in [key for key in os.environ if key.startswith("RELCOLLECT__")]:
        monkeypatch.delenv(key)
    return directory


@pytest.fixture
def recording_sink():
    """Return the in-memory sink class so tests can configure failures."""
    return RecordingSink
