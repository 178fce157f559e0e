"""
Domain error taxonomy.

Every error the services raise is an HTTPException subclass carrying a
stable machine-readable ``code`` next to the human message, so routes never
translate errors themselves:

  ValidationError        400  bad input the client can fix
  UnauthenticatedError   401  missing, invalid or expired credential
  ForbiddenError         403  authenticated but not allowed
  NotFoundError          404  entity does not exist
  ConflictError          409  overlapping booking / entity in use

Anything else reaching the app is an internal error and is answered with an
opaque 500 by the handler in ``labbook.main``.
"""

from typing import Optional

from fastapi import HTTPException, status


class AppError(HTTPException):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "InternalError"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(status_code=self.status_code, detail=message, headers=headers)
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        return self.detail

    def to_dict(self) -> dict:
        return {"status": "error", "code": self.code, "message": self.message}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "ValidationError"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "Conflict"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NotFound"


class AuthError(AppError):
    """Base for the two authorization outcomes."""


class UnauthenticatedError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "Unauthenticated"

    def __init__(self, message: str = "Not authenticated", code: Optional[str] = None):
        super().__init__(message, code, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "Forbidden"

    def __init__(self, message: str = "Insufficient privileges", code: Optional[str] = None):
        super().__init__(message, code)


class InvalidDateRange(ValidationError):
    """Rejected booking range; ``reason`` is PastStartDate or InvalidRange."""

    code = "InvalidDateRange"

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reason": self.reason}
