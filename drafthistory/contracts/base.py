"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Recoverable failures travel as Result / OperationResult values
- Only invariant violations are raised as exceptions
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Optional, Tuple


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for recoverable, caller-handled failures.
    Every error state is enumerated.
    """
    # Replicated text errors
    INVALID_STATE = auto()

    # Commit store errors
    COMMIT_NOT_FOUND = auto()
    IMPORT_FAILED = auto()
    STORAGE_MISS = auto()

    # Timeline errors
    BRANCH_NOT_FOUND = auto()
    BRANCH_EXISTS = auto()
    NODE_NOT_FOUND = auto()
    BRANCH_TIP_UNRESOLVED = auto()
    BRANCH_INACTIVE = auto()
    INVALID_MERGE = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )


@dataclass(frozen=True)
class Result:
    """
    Generic result type for operations that can fail.
    Either contains a value OR an error, never both.
    """
    value: Optional[object] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @staticmethod
    def success(value: object = None) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)

    @staticmethod
    def fail(code: ErrorCode, message: str) -> Result:
        return Result.failure(Error(code=code, message=message))


@dataclass(frozen=True)
class OperationResult:
    """
    Outcome of a timeline operation, shaped for callers that prompt the user.

    `success` and `message` are always present; `data` carries the
    created objects on success, `error` the typed failure otherwise.
    """
    success: bool
    message: str
    data: Optional[dict] = None
    error: Optional[Error] = None

    @staticmethod
    def ok(message: str, **data: Any) -> OperationResult:
        return OperationResult(success=True, message=message, data=dict(data))

    @staticmethod
    def failed(code: ErrorCode, message: str) -> OperationResult:
        return OperationResult(
            success=False,
            message=message,
            error=Error(code=code, message=message)
        )


# =============================================================================
# INVARIANT VIOLATIONS (Raised, never returned)
# =============================================================================

class DraftHistoryError(Exception):
    """Base class for internal corruption errors."""
    pass


class TimelineCorruptionError(DraftHistoryError):
    """Raised when a graph mutation would break a structural invariant."""
    pass


class BranchNotFoundError(DraftHistoryError, KeyError):
    """Raised when a caller appends to a branch that was never registered."""
    pass


class CommitStoreCorruptionError(DraftHistoryError):
    """Raised by integrity checks when the commit index has drifted."""
    pass


# =============================================================================
# TIME HELPERS
# =============================================================================

DAY_MS = 24 * 60 * 60 * 1000


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds (naive = UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
