"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.
No behavior, no side effects, no dependencies.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- All types are frozen dataclasses for immutability guarantee
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from enum import Enum, auto
import uuid


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    No silent fallbacks - every error state is enumerated.
    """
    # Input errors
    VALIDATION_ERROR = auto()
    UNKNOWN_STAGE = auto()

    # Protocol gating errors
    STAGE_NOT_ELIGIBLE = auto()
    PROTOCOL_ALREADY_CLEARED = auto()

    # Storage errors
    CONCURRENT_MODIFICATION = auto()
    PROTOCOL_NOT_FOUND = auto()
    STORAGE_FAILURE = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )

    def get(self, key: str) -> Optional[str]:
        """Look up a context value by key (last write wins)."""
        for k, v in reversed(self.context):
            if k == key:
                return v
        return None

    def to_dict(self) -> dict:
        return {
            'code': self.code.name,
            'message': self.message,
            'timestamp': self.timestamp.isoformat(),
            'context': dict(self.context),
        }


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
    def success(value: object) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)


def fail(code: ErrorCode, message: str, at: datetime, **context: object) -> Result:
    """Shorthand for a failed Result carrying string-encoded context."""
    error = Error(code=code, message=message, timestamp=at)
    for key, value in context.items():
        error = error.with_context(key, str(value))
    return Result.failure(error)


# =============================================================================
# IDENTITY TYPES
# =============================================================================

def generate_protocol_id() -> str:
    """Generate a fresh protocol identifier."""
    return f"rtp_{uuid.uuid4().hex}"


# =============================================================================
# TEMPORAL TYPES (Immutable, explicit semantics)
# =============================================================================

@dataclass(frozen=True, order=True)
class Timestamp:
    """
    Immutable timestamp with explicit semantics.
    All timestamps are UTC, never local time.
    """
    value: datetime

    def __post_init__(self):
        # Ensure UTC timezone
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))
        else:
            object.__setattr__(self, 'value', self.value.astimezone(timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    @staticmethod
    def from_iso(iso_string: str) -> Timestamp:
        dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return Timestamp(value=dt)

    def to_iso(self) -> str:
        return self.value.isoformat()


def hours_between(start: Timestamp, end: Timestamp) -> float:
    """Signed real-valued hours from start to end."""
    return (end.value - start.value).total_seconds() / 3600.0
