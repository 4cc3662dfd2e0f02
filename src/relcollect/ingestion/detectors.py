"""Content classification and hashing utilities."""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass
from typing import Iterable, Optional

from relcollect.config.models import DEFAULT_BINARY_EXTENSIONS

BINARY_FILE_REASON = "Binary file - content not read"
FILE_TOO_LARGE_REASON = "File too large - content not read"


def _normalize_extension(extension: Optional[str]) -> str:
    ext = (extension or "").strip().lower()
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return ext


@dataclass(frozen=True, slots=True)
class ContentDecision:
    """Outcome of classifying a file.

    Attributes:
        should_read: Whether the file content should be read.
        reason: Why the content is skipped; None when it should be read.
    """

    should_read: bool
    reason: Optional[str] = None


class ContentClassifier:
    """Decide whether a file's content should be read from its extension and size.

    The binary extension set is fixed at construction so alternate policies can be
    exercised side by side without touching shared state.
    """

    def __init__(self, binary_extensions: Iterable[str] = DEFAULT_BINARY_EXTENSIONS) -> None:
        self._binary_extensions = frozenset(
            ext for ext in (_normalize_extension(item) for item in binary_extensions) if ext
        )

    @property
    def binary_extensions(self) -> frozenset[str]:
        """Return the extensions treated as binary."""
        return self._binary_extensions

    def classify(
        self, extension: Optional[str], size_bytes: int, max_size_bytes: int
    ) -> ContentDecision:
        """Apply the binary-extension and size-cap rules, first match wins.

        Args:
            extension: File extension, with or without the leading dot.
            size_bytes: Size of the file in bytes.
            max_size_bytes: Files at or above this size are not read.

        Returns:
            ContentDecision: Whether to read the content and the skip reason.
        """
        if _normalize_extension(extension) in self._binary_extensions:
            return ContentDecision(False, BINARY_FILE_REASON)
        if size_bytes >= max_size_bytes:
            return ContentDecision(False, FILE_TOO_LARGE_REASON)
        return ContentDecision(True)

    def should_read(self, extension: Optional[str], size_bytes: int, max_size_bytes: int) -> bool:
        """Return True when the content of the file should be read."""
        return self.classify(extension, size_bytes, max_size_bytes).should_read


class HashComputer:
    """Compute content hashes for captured text."""

    def compute(self, content: str) -> str:
        """Return the base64 encoded SHA-256 digest of the UTF-8 encoded content."""
        digest = hashlib.sha256(content.encode("utf-8")).digest()
        return base64.b64encode(digest).decode("ascii")


__all__ = [
    "BINARY_FILE_REASON",
    "FILE_TOO_LARGE_REASON",
    "ContentDecision",
    "ContentClassifier",
    "HashComputer",
]
