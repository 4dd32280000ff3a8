"""
Structured error taxonomy for RamsFlow.

Every application error has:
  - A stable error code (prefixed by domain)
  - An HTTP status code
  - A human-readable message
  - An optional detail dict for machine consumers

Workflow guard failures all use InvalidOperationError; the error code
distinguishes wrong-status, validation and lookup failures so the HTTP
boundary can map them without parsing messages.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Stable, versioned error codes. Never reuse a retired code."""

    # Auth
    AUTH_INVALID_CREDENTIALS = "AUTH_001"
    AUTH_TOKEN_EXPIRED = "AUTH_002"
    AUTH_TOKEN_INVALID = "AUTH_003"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_004"
    AUTH_USER_INACTIVE = "AUTH_005"

    # RAMS workflow
    RAMS_INVALID_STATUS = "RAMS_001"
    RAMS_REFERENCE_EXISTS = "RAMS_002"
    RAMS_INCOMPLETE = "RAMS_003"
    RAMS_COMMENTS_REQUIRED = "RAMS_004"
    RAMS_INVALID_ORDER = "RAMS_005"
    RAMS_INVALID_LINK = "RAMS_006"
    RAMS_INVALID_POSITION = "RAMS_007"

    # Library
    LIB_CODE_EXISTS = "LIB_001"

    # AI suggestions
    AI_UNAVAILABLE = "AI_001"
    AI_CIRCUIT_OPEN = "AI_002"

    # Audit
    AUDIT_CHAIN_BROKEN = "AUD_001"

    # Generic
    VALIDATION_ERROR = "GEN_001"
    INTERNAL_ERROR = "GEN_002"
    NOT_FOUND = "GEN_003"
    RATE_LIMITED = "GEN_004"


class AppError(Exception):
    """Base class for all application errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        http_status: int = 500,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.detail = detail or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "detail": self.detail,
            }
        }


# ── Typed convenience subclasses ──────────────────────────────────────── #


class NotFoundError(AppError):
    def __init__(
        self, entity: str, entity_id: str | None = None, code: ErrorCode = ErrorCode.NOT_FOUND
    ) -> None:
        detail = {"entity": entity}
        if entity_id:
            detail["id"] = entity_id
        super().__init__(
            code=code,
            message=f"{entity} not found",
            http_status=404,
            detail=detail,
        )


class AuthError(AppError):
    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(code=code, message=message, http_status=401)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(
            code=ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
            message=message,
            http_status=403,
        )


class ValidationError(AppError):
    def __init__(self, message: str, detail: dict[str, Any] | None = None) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            http_status=422,
            detail=detail,
        )


class ConflictError(AppError):
    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(code=code, message=message, http_status=409)


class InvalidOperationError(AppError):
    """
    Generic workflow failure.

    Raised by the document state machine and the ordering operations.
    Status conflicts map to 409; malformed requests (bad position,
    foreign ids, blank comments) map to 400.
    """

    _BAD_REQUEST_CODES = frozenset(
        {
            ErrorCode.RAMS_INCOMPLETE,
            ErrorCode.RAMS_COMMENTS_REQUIRED,
            ErrorCode.RAMS_INVALID_ORDER,
            ErrorCode.RAMS_INVALID_LINK,
            ErrorCode.RAMS_INVALID_POSITION,
        }
    )

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.RAMS_INVALID_STATUS,
        detail: dict[str, Any] | None = None,
    ) -> None:
        http_status = 400 if code in self._BAD_REQUEST_CODES else 409
        super().__init__(code=code, message=message, http_status=http_status, detail=detail)


class ServiceUnavailableError(AppError):
    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(code=code, message=message, http_status=503)
