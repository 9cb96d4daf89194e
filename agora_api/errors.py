"""Application error taxonomy.

Handlers raise these; the exception handlers registered in ``main`` render
them as the shared error envelope ``{code, message, details?}``.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP error envelope."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        details: Any = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.message
        self.code = code or self.code
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def headers(self) -> dict[str, str]:
        return {}

    def to_envelope(self) -> dict[str, Any]:
        envelope: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            envelope["details"] = self.details
        return envelope


class ValidationError(AppError):
    """Malformed input; carries field-level details."""

    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Invalid payload"


class Unauthorized(AppError):
    """Missing, invalid or unverifiable credential, or no matching profile."""

    status_code = 401
    code = "UNAUTHORIZED"
    message = "Unauthorized"

    @property
    def headers(self) -> dict[str, str]:
        return {"WWW-Authenticate": "Bearer"}


class Forbidden(AppError):
    """Authenticated, but the access guard denied the operation."""

    status_code = 403
    code = "FORBIDDEN"
    message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Resource not found"


class UpstreamError(AppError):
    """A remote data store call failed.

    The store's own message is passed through; ``code`` names the handler
    operation that failed (e.g. ``CREATE_SUB_ERROR``).
    """

    status_code = 400
    code = "UPSTREAM_ERROR"
    message = "Data store request failed"

    def with_code(self, code: str) -> "UpstreamError":
        """Return a copy of this error relabelled for a handler operation."""
        return UpstreamError(
            self.message,
            code=code,
            details=self.details,
            status_code=self.status_code,
        )
