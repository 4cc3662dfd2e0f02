"""Data models shared by discovery, loading, and persistence."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

UNKNOWN_TIMESTAMP = datetime(1, 1, 1, tzinfo=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RecordModel(BaseModel):
    """Immutable base for records produced during a run."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class FileRecord(RecordModel):
    """Metadata and optional content captured for one discovered file.

    Attributes:
        run_id: Identifier of the run that discovered the file.
        full_path: Absolute path of the file.
        file_name: File name including extension.
        file_extension: Extension including the leading dot, empty when absent.
        directory_path: Directory containing the file.
        file_size_bytes: Size of the file in bytes.
        created_at: Creation (or metadata change) time in UTC.
        modified_at: Last modification time in UTC.
        accessed_at: Last access time in UTC.
        content: Text content when it was read successfully.
        content_hash: Base64 SHA-256 digest of the UTF-8 encoded content.
        is_readable: Whether the content was read successfully.
        error_message: Reason the content was not read, if any.
    """

    run_id: uuid.UUID
    full_path: str
    file_name: str
    file_extension: str = ""
    directory_path: str = ""
    file_size_bytes: int = Field(default=0, ge=0)
    created_at: datetime = UNKNOWN_TIMESTAMP
    modified_at: datetime = UNKNOWN_TIMESTAMP
    accessed_at: datetime = UNKNOWN_TIMESTAMP
    content: Optional[str] = None
    content_hash: Optional[str] = None
    is_readable: bool = False
    error_message: Optional[str] = None

    @field_validator("created_at", "modified_at", "accessed_at")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_content_fields(self) -> "FileRecord":
        if (self.content is None) != (self.content_hash is None):
            raise ValueError("content_hash must be present if and only if content is present")
        if self.is_readable:
            if self.content is None:
                raise ValueError("readable records must carry content and content_hash")
            if self.error_message is not None:
                raise ValueError("readable records cannot carry an error_message")
        elif self.content is not None:
            raise ValueError("unreadable records cannot carry content")
        return self


class DeploymentRecord(RecordModel):
    """Release metadata recorded once per run.

    Attributes:
        run_id: Identifier of the run.
        tags: Free-form tag string; the delimiter convention belongs to the caller.
        deployment: Free-form deployment label.
        deployment_date: When the deployment happened, in UTC.
    """

    run_id: uuid.UUID
    tags: str = ""
    deployment: str = ""
    deployment_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("deployment_date")
    @classmethod
    def _normalize_date(cls, value: datetime) -> datetime:
        return _as_utc(value)


class RunContext(RecordModel):
    """Run identifier plus optional deployment metadata for one invocation."""

    run_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    deployment: Optional[DeploymentRecord] = None

    @model_validator(mode="after")
    def _check_run_ids(self) -> "RunContext":
        if self.deployment is not None and self.deployment.run_id != self.run_id:
            raise ValueError("deployment record belongs to a different run")
        return self

    @classmethod
    def create(
        cls,
        *,
        tags: str = "",
        deployment: str = "",
        deployment_date: datetime | None = None,
        run_id: uuid.UUID | None = None,
    ) -> "RunContext":
        """Build a context with a fresh run id and its deployment record."""
        identifier = run_id or uuid.uuid4()
        record_fields: dict[str, object] = {
            "run_id": identifier,
            "tags": tags,
            "deployment": deployment,
        }
        if deployment_date is not None:
            record_fields["deployment_date"] = deployment_date
        return cls(run_id=identifier, deployment=DeploymentRecord(**record_fields))


class CollectionResult(BaseModel):
    """Summary of a completed collection run."""

    run_id: uuid.UUID
    root: str
    inserted: int = 0
    discovered: int = 0
    readable: int = 0
    skipped: int = 0
    failed: int = 0
    batches: int = 0
    deployment_recorded: bool = False
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def elapsed_seconds(self) -> float:
        end = self.finished_at or datetime.now(timezone.utc)
        return max(0.0, (end - self.started_at).total_seconds())

    @property
    def rate(self) -> float:
        elapsed = self.elapsed_seconds
        if elapsed <= 0:
            return float(self.inserted)
        return self.inserted / elapsed


__all__ = [
    "UNKNOWN_TIMESTAMP",
    "FileRecord",
    "DeploymentRecord",
    "RunContext",
    "CollectionResult",
]
