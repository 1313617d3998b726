"""Custom exception hierarchy for the cost-estimation matrix."""

from __future__ import annotations

from typing import Any


class CostMatrixError(Exception):
    """Base exception for all costmatrix errors."""


class ValidationError(CostMatrixError):
    """Raised when an input fails a precondition before any store call.

    ``field`` names the offending input so callers can show the message
    next to the control that produced it.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class DuplicateCombinationError(ValidationError):
    """Raised when a (type, style, specification) triple already exists."""


class DimensionValueError(ValidationError):
    """Raised when a dimension value edit would merge or empty a dimension."""


class ConflictError(CostMatrixError):
    """Raised by a store when a write collides with existing rows."""


class NotFoundError(CostMatrixError):
    """Raised when a combination id does not exist."""


class TransportError(CostMatrixError):
    """Raised when the remote API fails or answers with an error status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class BatchAbortedError(CostMatrixError):
    """Raised when a sequential bulk operation stops at its first failure.

    ``completed`` holds what was already committed before the failure,
    ``failed`` the item whose call raised. The original error is chained
    as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        completed: list[Any],
        failed: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.completed = completed
        self.failed = failed
