"""Errors raised while loading or validating configuration."""

from __future__ import annotations

from typing import Optional


class ConfigError(Exception):
    """Raised when configuration data cannot be read, merged, or validated.

    Attributes:
        source: Layer that supplied the offending value (``file``,
            ``environment``, ``cli`` or ``defaults``), when known.
        field: Dotted path of the offending setting, when known.
    """

    def __init__(
        self, message: str, *, source: Optional[str] = None, field: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.source = source
        self.field = field
