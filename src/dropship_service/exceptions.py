"""Domain exceptions mapped to HTTP responses by the application."""

from typing import Any


class DropshipError(Exception):
    """Base class for errors raised by services."""

    status_code: int = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class NotFoundError(DropshipError):
    status_code = 404


class ConflictError(DropshipError):
    status_code = 409


class DomainValidationError(DropshipError):
    status_code = 400


class IntegrationDisabledError(DropshipError):
    status_code = 503


class CJAPIError(DropshipError):
    """CJ Dropshipping API call failed."""

    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        http_status: int | None = None,
        request_id: str | None = None,
    ):
        super().__init__(message, code=code, http_status=http_status, request_id=request_id)
        self.code = code
        self.http_status = http_status
        self.request_id = request_id


class CJAuthError(CJAPIError):
    """Credentials rejected or token could not be obtained."""


class CJRateLimitError(CJAPIError):
    """Rate limit still exceeded after retries."""

    status_code = 429
