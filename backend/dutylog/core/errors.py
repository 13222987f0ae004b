"""Application error taxonomy.

Every business-rule or authorization failure is raised as an ``AppError``
carrying one ``ErrorCode``. The HTTP layer maps codes to status codes and
renders ``{"error": message}`` bodies.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from dutylog.core.config import get_settings


class ErrorCode(str, Enum):
    """Error taxonomy shared by policies, services and the HTTP layer."""

    UNAUTHENTICATED = "unauthenticated"
    CROSS_TENANT = "cross_tenant"
    INSUFFICIENT_ROLE = "insufficient_role"
    NOT_OWNER = "not_owner"
    SELF_ACTION = "self_action"
    IDENTITY_MISMATCH = "identity_mismatch"
    LAST_ADMIN = "last_admin"
    TARGET_IS_ADMIN = "target_is_admin"
    ALREADY_MEMBER = "already_member"
    DUPLICATE_PENDING = "duplicate_pending"
    ALREADY_REGISTERED = "already_registered"
    EXPIRED = "expired"
    EMAIL_MISMATCH = "email_mismatch"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STORE_ERROR = "store_error"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.CROSS_TENANT: 403,
    ErrorCode.INSUFFICIENT_ROLE: 403,
    ErrorCode.NOT_OWNER: 403,
    ErrorCode.SELF_ACTION: 403,
    ErrorCode.IDENTITY_MISMATCH: 403,
    ErrorCode.LAST_ADMIN: 400,
    ErrorCode.TARGET_IS_ADMIN: 400,
    ErrorCode.ALREADY_MEMBER: 400,
    ErrorCode.DUPLICATE_PENDING: 400,
    ErrorCode.ALREADY_REGISTERED: 400,
    ErrorCode.EXPIRED: 400,
    ErrorCode.EMAIL_MISMATCH: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.STORE_ERROR: 500,
}


class AppError(Exception):
    """Base application error.

    Args:
        code: Taxonomy entry, determines the HTTP status
        message: Human-readable message returned as ``error``
        extra: Additional fields merged into the error body
    """

    def __init__(self, code: ErrorCode, message: str, extra: dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.extra = extra or {}

    @property
    def status_code(self) -> int:
        return self.code.status_code

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}

    def __repr__(self) -> str:
        return f"<AppError(code={self.code.value}, message={self.message!r})>"


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(ErrorCode.NOT_FOUND, message)


class ValidationFailed(AppError):
    def __init__(self, message: str):
        super().__init__(ErrorCode.VALIDATION_ERROR, message)


class ConflictError(AppError):
    def __init__(self, message: str):
        super().__init__(ErrorCode.CONFLICT, message)


class StoreError(AppError):
    """A database or delivery failure surfaced as a 500.

    ``details`` is only attached when the configuration allows exposing
    store error details.
    """

    def __init__(self, message: str = "Internal server error", cause: BaseException | None = None):
        extra = None
        if cause is not None and get_settings().show_error_details:
            extra = {"details": str(getattr(cause, "orig", None) or cause)}
        super().__init__(ErrorCode.STORE_ERROR, message, extra)
