"""SQLAlchemy-backed sink for file and deployment records."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Optional, Sequence

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    create_engine,
    func,
    insert,
    select,
    text,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from relcollect.errors import SinkError
from relcollect.ingestion.models import DeploymentRecord, FileRecord

LOGGER = logging.getLogger(__name__)

_IDENTITY = BigInteger().with_variant(Integer, "sqlite")
_PATH_WIDTH = 4000

metadata = MetaData()

deployment_release_files = Table(
    "deployment_release_files",
    metadata,
    Column("id", _IDENTITY, primary_key=True, autoincrement=True),
    Column("run_id", Uuid, nullable=False),
    Column("full_path", String(_PATH_WIDTH), nullable=False),
    Column("file_name", String(255), nullable=False),
    Column("file_extension", String(50)),
    Column("directory_path", String(_PATH_WIDTH)),
    Column("file_size_bytes", BigInteger, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("modified_at", DateTime(timezone=True), nullable=False),
    Column("accessed_at", DateTime(timezone=True), nullable=False),
    Column("content", Text),
    Column("content_hash", String(100)),
    Column("is_readable", Boolean, nullable=False),
    Column("error_message", String(1000)),
    Column("processed_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Index("ix_deployment_release_files_run_id", "run_id"),
    Index("ix_deployment_release_files_file_extension", "file_extension"),
    Index("ix_deployment_release_files_modified_at", "modified_at"),
)

deployment_release = Table(
    "deployment_release",
    metadata,
    Column("id", _IDENTITY, primary_key=True, autoincrement=True),
    Column("run_id", Uuid, nullable=False),
    Column("tags", String(512), nullable=False),
    Column("deployment", String(255), nullable=False),
    Column("deployment_date", DateTime(timezone=True), nullable=False),
    Column("processed_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Index("ix_deployment_release_run_id", "run_id"),
    Index("ix_deployment_release_deployment", "deployment"),
    Index("ix_deployment_release_tags", "tags"),
)

_FILE_FIELDS = (
    "run_id",
    "full_path",
    "file_name",
    "file_extension",
    "directory_path",
    "file_size_bytes",
    "created_at",
    "modified_at",
    "accessed_at",
    "content",
    "content_hash",
    "is_readable",
    "error_message",
)


def _truncate(value: Optional[str], limit: int) -> Optional[str]:
    if value is None or len(value) <= limit:
        return value
    return value[:limit]


class SqlSink:
    """Persist records through SQLAlchemy Core, one transaction per batch."""

    def __init__(self, url: str | Engine, *, echo: bool = False) -> None:
        """Create the engine for url, or wrap an existing engine.

        Args:
            url: SQLAlchemy database URL or a ready engine.
            echo: Whether SQLAlchemy should log emitted SQL.

        Raises:
            SinkError: If the URL or its driver cannot be loaded.
        """
        if isinstance(url, Engine):
            self._engine = url
            return
        try:
            _prepare_sqlite_directory(url)
            self._engine = create_engine(url, echo=echo)
        except (SQLAlchemyError, ImportError) as exc:
            raise SinkError(f"Unable to create database engine: {exc}") from exc

    @property
    def engine(self) -> Engine:
        """Return the underlying SQLAlchemy engine."""
        return self._engine

    def initialize_schema(self) -> None:
        """Create both release tables and their indexes if they do not exist.

        Raises:
            SinkError: If the DDL cannot be executed.
        """
        LOGGER.info("Initializing database tables...")
        try:
            metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            LOGGER.error("Failed to initialize database tables: %s", exc)
            raise SinkError(f"Failed to initialize database tables: {exc}") from exc
        LOGGER.info("Database tables initialized successfully")

    def test_connection(self) -> bool:
        """Return True when a trivial query succeeds; failures are logged, not raised."""
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1")).scalar_one()
        except SQLAlchemyError as exc:
            LOGGER.warning("Database connection test failed: %s", exc)
            return False
        return True

    def insert_batch(self, records: Sequence[FileRecord]) -> int:
        """Insert records in a single transaction.

        Over-long strings are cut to their column widths first. An empty batch
        returns 0 without opening a connection.

        Args:
            records: File records belonging to one flush.

        Returns:
            int: Number of rows committed.

        Raises:
            SinkError: If the insert fails; the transaction is rolled back.
        """
        rows = [self._file_row(record) for record in records]
        if not rows:
            LOGGER.debug("No file records to insert")
            return 0

        try:
            with self._engine.begin() as conn:
                conn.execute(insert(deployment_release_files), rows)
        except SQLAlchemyError as exc:
            LOGGER.error("Failed to insert %d file records: %s", len(rows), exc)
            raise SinkError(f"Failed to insert {len(rows)} file records: {exc}") from exc

        LOGGER.debug("Inserted %d file records", len(rows))
        return len(rows)

    def insert_deployment_record(self, record: DeploymentRecord) -> int:
        """Insert the deployment release row for a run.

        Args:
            record: Deployment metadata; tags and deployment are truncated to
                their column widths.

        Returns:
            int: Always 1 when the row is committed.

        Raises:
            SinkError: If the insert fails.
        """
        row = {
            "run_id": record.run_id,
            "tags": _truncate(record.tags, 512),
            "deployment": _truncate(record.deployment, 255),
            "deployment_date": record.deployment_date,
        }
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(deployment_release), row)
        except SQLAlchemyError as exc:
            LOGGER.error("Failed to insert deployment release for run %s: %s", record.run_id, exc)
            raise SinkError(f"Failed to record deployment release: {exc}") from exc

        LOGGER.info("Recorded deployment release for run %s", record.run_id)
        return 1

    def deployment_records(self, run_id: uuid.UUID) -> list[DeploymentRecord]:
        """Return the deployment releases recorded for run_id, newest first.

        Raises:
            SinkError: If the query fails.
        """
        stmt = (
            select(
                deployment_release.c.run_id,
                deployment_release.c.tags,
                deployment_release.c.deployment,
                deployment_release.c.deployment_date,
            )
            .where(deployment_release.c.run_id == run_id)
            .order_by(deployment_release.c.deployment_date.desc())
        )
        rows = self._fetch(stmt, f"deployment releases for run {run_id}")
        return [DeploymentRecord(**row) for row in rows]

    def file_records(self, run_id: uuid.UUID) -> list[FileRecord]:
        """Return the file records stored for run_id ordered by full path.

        Raises:
            SinkError: If the query fails.
        """
        columns = [deployment_release_files.c[name] for name in _FILE_FIELDS]
        stmt = (
            select(*columns)
            .where(deployment_release_files.c.run_id == run_id)
            .order_by(deployment_release_files.c.full_path)
        )
        rows = self._fetch(stmt, f"file records for run {run_id}")
        return [FileRecord(**row) for row in rows]

    def count_files(self, run_id: uuid.UUID) -> int:
        """Return the number of file records stored for run_id.

        Raises:
            SinkError: If the query fails.
        """
        stmt = (
            select(func.count())
            .select_from(deployment_release_files)
            .where(deployment_release_files.c.run_id == run_id)
        )
        try:
            with self._engine.connect() as conn:
                return int(conn.execute(stmt).scalar_one())
        except SQLAlchemyError as exc:
            raise SinkError(f"Failed to count files for run {run_id}: {exc}") from exc

    def dispose(self) -> None:
        """Release pooled connections."""
        self._engine.dispose()

    def _fetch(self, stmt: Any, description: str) -> list[dict[str, Any]]:
        try:
            with self._engine.connect() as conn:
                result = conn.execute(stmt)
                return [dict(row) for row in result.mappings()]
        except SQLAlchemyError as exc:
            LOGGER.error("Failed to retrieve %s: %s", description, exc)
            raise SinkError(f"Failed to retrieve {description}: {exc}") from exc

    @staticmethod
    def _file_row(record: FileRecord) -> dict[str, Any]:
        row = record.model_dump(include=set(_FILE_FIELDS))
        row["full_path"] = _truncate(record.full_path, _PATH_WIDTH)
        row["directory_path"] = _truncate(record.directory_path, _PATH_WIDTH)
        row["file_name"] = _truncate(record.file_name, 255)
        row["file_extension"] = _truncate(record.file_extension, 50)
        row["error_message"] = _truncate(record.error_message, 1000)
        return row


def _prepare_sqlite_directory(url: str) -> None:
    parsed = make_url(url)
    if not parsed.drivername.startswith("sqlite"):
        return
    database = parsed.database
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


__all__ = ["SqlSink", "metadata", "deployment_release", "deployment_release_files"]
