from __future__ import annotations

from typing import Any


class AuthServiceError(Exception):
    """Base exception for all auth-service errors.

    status_code 와 message 는 공통 에러 응답 envelope 로 그대로 변환된다.
    """

    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(
        self,
        message: str | None = None,
        *,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(AuthServiceError):
    """Malformed input (e.g., invalid email, short password)."""

    status_code = 400
    default_message = "Validation failed"


class ConflictError(AuthServiceError):
    """Duplicate resource (e.g., an account with the same email)."""

    status_code = 400
    default_message = "Resource already exists"


class UnauthorizedError(AuthServiceError):
    """Bad credentials or no authenticated session."""

    status_code = 401
    default_message = "Authentication required. Please log in."


class ForbiddenError(AuthServiceError):
    """Authenticated, but the role does not match the session namespace."""

    status_code = 403
    default_message = "Access denied"


class NotFoundError(AuthServiceError):
    """Missing resource (e.g., the session principal was removed)."""

    status_code = 404
    default_message = "Not found"


class StoreUnavailableError(AuthServiceError):
    """Session store or user store I/O failure."""

    status_code = 500
    default_message = "Session store unavailable"

    def __init__(self, message: str | None = None, *, operation: str = "") -> None:
        super().__init__(message)
        self.operation = operation


class CorruptedSessionError(AuthServiceError):
    """Structurally invalid session record.

    세션 sanitizer 내부에서만 사용되며 클라이언트에게는 절대 노출되지 않는다.
    """

    def __init__(self, session_id: str, reason: str) -> None:
        super().__init__(f"corrupted session record: {reason}")
        self.session_id = session_id
        self.reason = reason
