"""Error Hierarchy — typed, categorized exceptions for custom-role failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recoverable; infrastructure errors (500-level) are critical
    - to_response() produces the REST envelope
    - Not-found for a foreign-account role is indistinguishable from a missing role

Design Decisions:
    - Single hierarchy with CustomRolesError base: FastAPI global handler catches all
    - Core and services return typed results (ValidationFailed, RoleInUse); only
      routes raise these, so business rules never surface as uncaught faults
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


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
    ACCESS = "access"
    DATABASE = "database"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    account_id: str | None = None
    role_id: str | None = None
    principal_id: str | None = None
    debug_info: dict[str, Any] | None = None


class CustomRolesError(Exception):
    """Base exception for all custom-role errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status
        self.details = details

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        body = {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.context.timestamp.isoformat(),
            "context": {
                "account_id": self.context.account_id,
                "role_id": self.context.role_id,
                "principal_id": self.context.principal_id,
            },
        }
        if self.details is not None:
            body["details"] = self.details
        return {"error": body}


# ─── Domain Errors (400-level) ──────────────────────────────────

class RoleValidationError(CustomRolesError):
    """Role draft rejected; carries the per-field error map."""
    def __init__(
        self,
        field_errors: Mapping[str, list[str]],
        messages: list[str] | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            "The custom role could not be saved due to validation errors.",
            "VALIDATION_FAILED", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 422,
            details={
                "field_errors": {k: list(v) for k, v in field_errors.items()},
                "messages": messages or [],
            },
        )
        self.field_errors = field_errors


class RoleInUseError(CustomRolesError):
    """Deletion blocked while principals are bound to the role."""
    def __init__(self, bound_count: int, context: ErrorContext | None = None):
        super().__init__(
            "Cannot delete custom role as it has users assigned to it. "
            "Please reassign users before deleting.",
            "ROLE_HAS_ASSIGNED_USERS", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 422,
            details={"assigned_users_count": bound_count},
        )
        self.bound_count = bound_count


class ResourceNotFoundError(CustomRolesError):
    """Requested resource does not exist in the caller's account."""
    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        code: str = "RESOURCE_NOT_FOUND",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            code, ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class RoleNotFoundError(ResourceNotFoundError):
    """Custom role absent or owned by another account."""
    def __init__(self, role_id: str, context: ErrorContext | None = None):
        super().__init__("Custom role", role_id, "CUSTOM_ROLE_NOT_FOUND", context)


class FeatureDisabledError(CustomRolesError):
    """Custom roles capability not enabled for the account."""
    def __init__(self, feature: str, context: ErrorContext | None = None):
        super().__init__(
            "Custom roles feature is not enabled for this account.",
            "FEATURE_NOT_ENABLED", ErrorCategory.ACCESS,
            ErrorSeverity.WARNING, context, 403,
            details={"feature": feature},
        )


class AccessDeniedError(CustomRolesError):
    """Caller is not allowed to perform the operation."""
    def __init__(
        self,
        message: str = "Only administrators can manage custom roles.",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "ACCESS_DENIED", ErrorCategory.ACCESS,
            ErrorSeverity.WARNING, context, 403,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(CustomRolesError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
