"""Run-level errors raised by discovery, loading, and persistence."""


class CollectorError(Exception):
    """Base exception for collection runs.

    Attributes:
        committed: Number of records durably written before the error surfaced.
    """

    def __init__(self, message: str = "", *, committed: int = 0) -> None:
        super().__init__(message)
        self.committed = committed


class ValidationError(CollectorError):
    """Raised when a component receives invalid input."""


class NotFoundError(CollectorError):
    """Raised when the root path does not exist."""


class PerFileError(CollectorError):
    """Describes a failure contained within a single file record."""


class SinkError(CollectorError):
    """Raised when a batch or deployment record cannot be persisted."""


class CancellationError(CollectorError):
    """Raised when a run observes a cancellation request."""


__all__ = [
    "CollectorError",
    "ValidationError",
    "NotFoundError",
    "PerFileError",
    "SinkError",
    "CancellationError",
]
