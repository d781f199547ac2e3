"""Application exceptions.

HTTP-facing errors are ``HTTPException`` subclasses so route handlers can raise
them directly. Domain errors for the LLM boundary live here as well.
"""

from fastapi import HTTPException, status


class AppError(HTTPException):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str = "Internal error"):
        super().__init__(status_code=self.status_code, detail=detail)


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class LlmAdapterError(Exception):
    """An LLM call failed after all retry attempts (or timed out each time)."""

    def __init__(self, operation: str, message: str, attempts: int = 1):
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"{operation} failed after {attempts} attempt(s): {message}")


class LlmResponseFormatError(ValueError):
    """Structured LLM output could not be parsed."""


class BadGatewayError(AppError):
    """The upstream LLM service could not produce an answer."""

    status_code = status.HTTP_502_BAD_GATEWAY
