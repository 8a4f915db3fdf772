"""Error types shared by the Botsy integrations and API."""

from __future__ import annotations

from typing import Any

__all__ = [
    "ApiError",
    "ConfigurationError",
    "GoneError",
    "OAuthError",
    "RateLimitedError",
]


class ApiError(Exception):
    """Error that carries its own HTTP status and machine readable code."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details or {}

    def to_body(self) -> dict[str, Any]:
        return {"success": False, "error": self.message, "code": self.code}


class ConfigurationError(ApiError):
    """A required credential or URL is not configured."""

    status_code = 500
    code = "CONFIGURATION_ERROR"


class OAuthError(ApiError):
    """An OAuth provider rejected a request or returned an unusable payload."""

    status_code = 502
    code = "OAUTH_ERROR"


class RateLimitedError(ApiError):
    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, retry_after: int) -> None:
        super().__init__("Too many requests, try again later")
        self.retry_after = retry_after


class GoneError(ApiError):
    """The resource existed but has expired or was already used."""

    status_code = 410
    code = "GONE"
