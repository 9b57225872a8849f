"""Exception taxonomy for the matching engine.

Validation problems are always raised to the caller. Missing profile data and
cold-start users are not errors; they produce defined scores or fallbacks.
"""

from typing import Any


class MatchEngineError(Exception):
    """Base exception for all engine errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ValidationError(MatchEngineError, ValueError):
    """Malformed weights, filters, vectors or enum values."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field is not None:
            details["field"] = field
        if value is not None:
            details["value"] = value if isinstance(value, (int, float, str, bool)) else str(value)
        super().__init__(message, error_code="VALIDATION_ERROR", details=details)
        self.field = field
        self.value = value


class UnknownAlgorithmError(ValidationError):
    """An unknown recommender algorithm or similarity metric was requested."""


class TrainingDataInsufficientWarning(UserWarning):
    """Latent-factor training skipped for lack of interactions."""
