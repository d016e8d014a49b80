"""
Tagged error variants shared by the middleware, services and routers.

Every variant carries the HTTP status it maps to and the stable ``error`` key
rendered in the JSON envelope ``{error, message, details}``. Boundaries
discriminate on the class, never on message text.
"""
from typing import Any, Optional, Union


class AppError(Exception):
    """Base class for errors rendered as a JSON error envelope."""

    status_code = 500
    error = "Server error"

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.error, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    status_code = 400
    error = "Invalid request"


class AuthenticationError(AppError):
    status_code = 401
    error = "Unauthorized"


class SessionLookupError(AuthenticationError):
    """The session store could not be consulted (not the same as 'no session')."""

    status_code = 500
    error = "Authentication error"


class ForbiddenError(AppError):
    status_code = 403
    error = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    error = "Not found"


class ConfigurationError(AppError):
    error = "Configuration error"


class ProviderError(AppError):
    """Non-success answer (or no answer at all) from the LLM provider."""

    error = "Provider error"

    def __init__(
        self,
        message: str,
        provider_status: Optional[int] = None,
        error_type: Optional[str] = None,
        param: Optional[str] = None,
        code: Optional[Union[str, int]] = None,
    ):
        self.provider_status = provider_status
        self.error_type = error_type
        self.param = param
        self.code = code
        details = {
            key: value
            for key, value in {
                "provider_status": provider_status,
                "type": error_type,
                "param": param,
                "code": code,
            }.items()
            if value is not None
        }
        super().__init__(message, details or None)


class CompletionTimeoutError(AppError):
    status_code = 408
    error = "Request timeout"

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Request timed out after {timeout_seconds:g}s",
            {"timeout_seconds": timeout_seconds},
        )


class MalformedResponseError(AppError):
    error = "Malformed response"


class GenerationError(AppError):
    error = "Generation failed"


class ServerError(AppError):
    pass
