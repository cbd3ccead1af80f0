"""
Application error taxonomy.

Services raise these; the handler registered in main.py renders them as
``{"error": {"code": ..., "message": ..., **extra}}`` with ``status_code``.
"""
from typing import Any


class AppError(Exception):
    status_code = 400
    code = "ERROR"

    def __init__(self, message: str, code: str | None = None, **extra: Any):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.extra}


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION"


class AuthError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class GoneError(AppError):
    status_code = 410
    code = "GONE"


class ServiceUnavailableError(AppError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"


class ReservationCodeExhaustedError(ServiceUnavailableError):
    """No unused reservation code/token found within the attempt budget. Retryable."""

    code = "RESERVATION_CODE_EXHAUSTED"

    def __init__(self, message: str = "Could not allocate a unique reservation code", **extra: Any):
        super().__init__(message, retryable=True, **extra)
