"""Configuration models describing relcollect settings."""

from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_DATABASE_PATH = Path("~/.relcollect/collector.db")
DEFAULT_BATCH_SIZE = 500
DEFAULT_MAX_CONTENT_SIZE_BYTES = 100 * 1024 * 1024

DEFAULT_BINARY_EXTENSIONS: tuple[str, ...] = (
    ".exe", ".dll", ".bin", ".obj", ".pdb",
    ".zip", ".rar", ".7z", ".tar", ".gz",
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".ico", ".svg", ".webp",
    ".mp3", ".mp4", ".avi", ".mkv", ".wav", ".flac", ".ogg",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
)  # fmt: skip


class CollectorBaseModel(BaseModel):
    """Shared configuration for relcollect Pydantic settings models."""

    model_config = ConfigDict(extra="forbid")


class DatabaseSettings(CollectorBaseModel):
    """Relational sink settings.

    Attributes:
        url: SQLAlchemy database URL. Defaults to a SQLite file in the home directory.
        batch_size: Number of file records written per transaction.
        echo: Whether SQLAlchemy should log emitted SQL statements.
    """

    url: Optional[str] = None
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, gt=0)
    echo: bool = False

    def effective_url(self) -> str:
        """Return the configured URL or the default SQLite location."""
        if self.url:
            return self.url
        return f"sqlite:///{DEFAULT_DATABASE_PATH.expanduser()}"


class ProcessingOptions(CollectorBaseModel):
    """Options governing discovery and content capture.

    Attributes:
        max_content_size_bytes: Files at or above this size are not read.
        follow_symlinks: Whether to traverse symbolic links.
        decode_errors: How invalid UTF-8 sequences are handled while reading.
        binary_extensions: Extensions whose content is never read.
    """

    max_content_size_bytes: int = Field(default=DEFAULT_MAX_CONTENT_SIZE_BYTES, gt=0)
    follow_symlinks: bool = False
    decode_errors: Literal["replace", "strict"] = "replace"
    binary_extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_BINARY_EXTENSIONS))

    @field_validator("binary_extensions")
    @classmethod
    def _normalize_extensions(cls, value: List[str]) -> List[str]:
        normalized: List[str] = []
        for item in value:
            ext = item.strip().lower()
            if not ext:
                continue
            if not ext.startswith("."):
                ext = f".{ext}"
            if ext not in normalized:
                normalized.append(ext)
        return normalized


class LoggingSettings(CollectorBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; enables rotating file output.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    file: Optional[str] = None
    max_size_mb: int = 100
    backup_count: int = 5


class CLIOptions(CollectorBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class CollectorConfig(CollectorBaseModel):
    """Top-level configuration struct for relcollect.

    Attributes:
        database: Relational sink settings.
        processing: Discovery and content capture settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    processing: ProcessingOptions = Field(default_factory=ProcessingOptions)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "CollectorBaseModel",
    "DatabaseSettings",
    "ProcessingOptions",
    "LoggingSettings",
    "CLIOptions",
    "CollectorConfig",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_BINARY_EXTENSIONS",
    "DEFAULT_DATABASE_PATH",
    "DEFAULT_MAX_CONTENT_SIZE_BYTES",
]
