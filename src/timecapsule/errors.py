"""
Exception hierarchy for the time capsule store.

All errors inherit from TimeCapsuleError, allowing callers to catch
every store-specific exception with a single except clause.

Exception Categories:
    - Reveal errors: capsule missing, sealed, or already revealed
    - Authorization errors: caller is not the capsule owner
    - Payload errors: message too long, record over the storage bound
    - Storage errors: database operation failed

Domain errors carry an ErrorKind. CapsuleEngine catches those and hands
them back as result values; storage errors propagate as exceptions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


# =============================================================================
# Error Codes
# =============================================================================

# Reveal errors: 1xxx
ERROR_CAPSULE_NOT_FOUND = 1001
ERROR_NOT_YET_REVEALABLE = 1002
ERROR_ALREADY_REVEALED = 1003

# Authorization errors: 2xxx
ERROR_UNAUTHORIZED = 2001

# Payload errors: 3xxx
ERROR_INVALID_PAYLOAD = 3001
ERROR_RECORD_TOO_LARGE = 3002

# Storage errors: 5xxx
ERROR_STORAGE_CONNECTION = 5001
ERROR_STORAGE_WRITE = 5002
ERROR_STORAGE_READ = 5003


class ErrorKind(str, Enum):
    """User-facing failure categories returned by the engine."""

    NOT_FOUND = "not_found"
    NOT_YET_REVEALABLE = "not_yet_revealable"
    ALREADY_REVEALED = "already_revealed"
    UNAUTHORIZED = "unauthorized"
    INVALID_PAYLOAD = "invalid_payload"


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class TimeCapsuleError(Exception):
    """
    Base exception for all time capsule errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


@dataclass
class CapsuleError(TimeCapsuleError):
    """
    Base class for user-facing capsule errors.

    These are normal outcomes of an operation, never faults. Every
    subclass leaves persisted state unchanged.

    Attributes:
        capsule_id: The identifier the operation was addressed to
    """

    capsule_id: str = ""

    kind: ClassVar[ErrorKind | None] = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.capsule_id:
            self.context["capsule_id"] = self.capsule_id

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, including the error kind."""
        data = super().to_dict()
        data["kind"] = self.kind.value if self.kind else None
        return data


# =============================================================================
# Reveal Errors
# =============================================================================


@dataclass
class CapsuleNotFoundError(CapsuleError):
    """Raised when no capsule exists under the given identifier."""

    kind = ErrorKind.NOT_FOUND

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"No capsule found with id {self.capsule_id}"
        if self.code == 0:
            self.code = ERROR_CAPSULE_NOT_FOUND
        super().__post_init__()


@dataclass
class NotYetRevealableError(CapsuleError):
    """Raised when a capsule is retrieved before its reveal date."""

    reveal_date: str = ""

    kind = ErrorKind.NOT_YET_REVEALABLE

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "The reveal date for this capsule has not arrived yet"
        if self.code == 0:
            self.code = ERROR_NOT_YET_REVEALABLE
        if not self.suggestion and self.reveal_date:
            self.suggestion = f"Try again after {self.reveal_date}"
        super().__post_init__()
        self.context["reveal_date"] = self.reveal_date


@dataclass
class AlreadyRevealedError(CapsuleError):
    """Raised when a capsule's one-time reveal has already happened."""

    kind = ErrorKind.ALREADY_REVEALED

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "This capsule has already been revealed"
        if self.code == 0:
            self.code = ERROR_ALREADY_REVEALED
        super().__post_init__()


# =============================================================================
# Authorization Errors
# =============================================================================


@dataclass
class UnauthorizedError(CapsuleError):
    """
    Raised when a caller other than the owner tries to modify a capsule.

    Attributes:
        caller: The identity that attempted the operation
    """

    caller: str = ""

    kind = ErrorKind.UNAUTHORIZED

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "You are not authorized to update this capsule"
        if self.code == 0:
            self.code = ERROR_UNAUTHORIZED
        super().__post_init__()
        self.context["caller"] = self.caller


# =============================================================================
# Payload Errors
# =============================================================================


@dataclass
class InvalidPayloadError(CapsuleError):
    """
    Raised when a create or update payload fails validation.

    Attributes:
        field_name: The payload field that failed (if applicable)
        reason: Why the field was rejected
    """

    field_name: str | None = None
    reason: str = ""

    kind = ErrorKind.INVALID_PAYLOAD

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid payload: {self.reason}"
        if self.code == 0:
            self.code = ERROR_INVALID_PAYLOAD
        super().__post_init__()
        self.context.update({
            "field": self.field_name,
            "reason": self.reason,
        })


@dataclass
class RecordTooLargeError(InvalidPayloadError):
    """Raised when a key or serialized record exceeds the storage bound."""

    actual_size: int = 0
    max_size: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.reason:
            self.reason = (
                f"{self.field_name or 'record'} is {self.actual_size} bytes, "
                f"limit is {self.max_size}"
            )
        if self.code == 0:
            self.code = ERROR_RECORD_TOO_LARGE
        if not self.suggestion:
            self.suggestion = "Shorten the message, URLs, or member list"
        super().__post_init__()
        self.context.update({
            "actual_size": self.actual_size,
            "max_size": self.max_size,
        })


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(TimeCapsuleError):
    """
    Base class for storage/database errors.

    Attributes:
        operation: The operation that failed (e.g., "insert", "query")
    """

    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["operation"] = self.operation


@dataclass
class StorageConnectionError(StorageError):
    """Raised when database connection fails."""

    db_path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to connect to database: {self.db_path}"
        if self.code == 0:
            self.code = ERROR_STORAGE_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check that the database path is valid and writable"
        super().__post_init__()
        self.context["db_path"] = self.db_path


@dataclass
class StorageWriteError(StorageError):
    """Raised when a write operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database write failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageReadError(StorageError):
    """Raised when a read operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database read failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_READ
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error
