"""Error types raised by the usage stats engine."""
from __future__ import annotations

from typing import Any, Dict, Optional


class UsageStatsError(Exception):
    """Base class for all engine errors."""

    error_code = "USAGE_STATS_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(UsageStatsError):
    """Malformed payload, tag name, username, or query argument."""

    error_code = "VALIDATION_ERROR"


class NotFoundError(UsageStatsError):
    """A referenced user does not exist."""

    error_code = "NOT_FOUND"


class ConflictError(UsageStatsError):
    """A write collided with a uniqueness constraint."""

    error_code = "CONFLICT"


class StoreError(UsageStatsError):
    """The underlying database failed."""

    error_code = "STORE_ERROR"
