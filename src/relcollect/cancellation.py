"""Cooperative cancellation shared by discovery and loading."""

from __future__ import annotations

import threading

from .errors import CancellationError


class CancellationToken:
    """Thread-safe flag checked at discovery steps and batch boundaries."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = "Operation cancelled"

    @property
    def cancelled(self) -> bool:
        """Return True once cancellation has been requested."""
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation.

        Args:
            reason: Optional message surfaced by the resulting CancellationError.
        """
        if reason:
            self._reason = reason
        self._event.set()

    def raise_if_cancelled(self, *, committed: int = 0) -> None:
        """Raise CancellationError when cancellation has been requested.

        Args:
            committed: Records persisted so far, attached to the error.

        Raises:
            CancellationError: If the token has been cancelled.
        """
        if self._event.is_set():
            raise CancellationError(self._reason, committed=committed)


__all__ = ["CancellationToken"]
