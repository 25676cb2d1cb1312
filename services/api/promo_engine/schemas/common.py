"""Common schemas used across the API."""

from typing import Any

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Structured error detail."""

    code: str
    message: str
    detail: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Standard error response format.

    Format: { "error": { "code": str, "message": str, "detail": object } }

    Returned by the global exception handler in main.py.
    """

    error: ErrorDetail

    @classmethod
    def of(cls, code: str, message: str, **detail: Any) -> "ErrorResponse":
        return cls(error=ErrorDetail(code=code, message=message, detail=detail or None))
