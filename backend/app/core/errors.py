"""Error Hierarchy — typed, categorized exceptions for all RaceLab failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recoverable; infrastructure errors (500-level) are critical
    - Kind distinctions survive end-to-end: the API layer maps http_status, never re-classifies
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with LedgerServiceError base: FastAPI global handler catches all (ADR: uniform error shape)
    - ContentionError is a CONFLICT, not a DATABASE error: the caller may retry it,
      StoreUnavailableError needs backoff
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    owner_id: int | None = None
    document_code: str | None = None
    operation: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class LedgerServiceError(Exception):
    """Base exception for all RaceLab errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    @property
    def retryable(self) -> bool:
        return self.context.retry_after_ms is not None

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "owner_id": self.context.owner_id,
                    "document_code": self.context.document_code,
                    "operation": self.context.operation,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class InvalidArgumentError(LedgerServiceError):
    """Argument rejected before any store interaction."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INVALID_ARGUMENT", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class AccountNotFoundError(LedgerServiceError):
    """No account row exists for the owner key."""
    def __init__(self, owner_id: int, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.owner_id = owner_id
        super().__init__(
            f"Account for owner '{owner_id}' not found",
            "ACCOUNT_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, ctx, 404,
        )
        self.owner_id = owner_id


class DocumentNotFoundError(LedgerServiceError):
    """No committed document carries the requested code."""
    def __init__(self, code: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.document_code = code
        super().__init__(
            f"Document '{code}' not found",
            "DOCUMENT_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, ctx, 404,
        )
        self.document_code = code


class InsufficientBalanceError(LedgerServiceError):
    """Debit would take the source account below zero."""
    def __init__(
        self,
        owner_id: int,
        balance: Decimal,
        amount: Decimal,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.owner_id = owner_id
        super().__init__(
            f"Insufficient balance: account '{owner_id}' cannot cover {amount}",
            "INSUFFICIENT_BALANCE", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, ctx, 409,
        )
        self.owner_id = owner_id
        self.balance = balance
        self.amount = amount


class SequenceConflictError(LedgerServiceError):
    """Insert hit a uniqueness constraint on (partition, sequence) or code."""
    def __init__(self, code: str | None = None, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.document_code = code
        super().__init__(
            f"Sequence conflict while allocating '{code}'" if code
            else "Sequence conflict while allocating a document",
            "SEQUENCE_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, ctx, 409,
        )


class ContentionError(LedgerServiceError):
    """Lock wait or transaction timed out. Retryable by the caller."""
    def __init__(
        self,
        message: str,
        retry_after_ms: int = 100,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            message, "CONTENTION", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, ctx, 409,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class StoreUnavailableError(LedgerServiceError):
    """Store connectivity or fatal driver failure."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.operation = operation
        super().__init__(
            f"Store {operation} failed: {message}",
            "STORE_UNAVAILABLE", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.operation = operation
