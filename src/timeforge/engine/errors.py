"""Error taxonomy for the time expression and substitution engine."""

from __future__ import annotations

from typing import Any, Dict, Optional


class TimeEngineError(ValueError):
    """Base class for all engine errors.

    ``field`` names the UI selector responsible for the failure
    (``time_field``, ``time_range.from`` ...) so callers can highlight it.
    """

    kind = "engine"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "message": self.message, "field": self.field}


class ParseError(TimeEngineError):
    """Raised when a time expression cannot be parsed."""

    kind = "parse"


class ConfigurationError(TimeEngineError):
    """Raised when a time range or timezone is incomplete or invalid."""

    kind = "configuration"


class MissingContextError(TimeEngineError):
    """Raised when a template needs a time field or an enabled range that is absent."""

    kind = "missing_context"


class PrecisionError(TimeEngineError):
    """Raised when an epoch conversion would lose precision or overflow 64 bits."""

    kind = "precision"


__all__ = [
    "TimeEngineError",
    "ParseError",
    "ConfigurationError",
    "MissingContextError",
    "PrecisionError",
]
