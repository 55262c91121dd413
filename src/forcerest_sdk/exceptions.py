"""SDK-specific exceptions."""

from __future__ import annotations

from typing import Mapping

REST_ERROR_DOMAIN = "com.forcerest.RestAPI"
OAUTH_ERROR_DOMAIN = "com.forcerest.OAuth"
TRANSPORT_ERROR_DOMAIN = "com.forcerest.Transport"

# Error code used for all REST API errors that are not HTTP errors.
REST_ERROR_CODE = 999


class ForceRestError(Exception):
    """Base exception for all REST SDK failures."""

    domain = REST_ERROR_DOMAIN

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | int | None = None,
        body: object = None,
        headers: Mapping[str, str] | None = None,
        request_id: str | None = None,
        retry_after: float | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.body = body
        self.headers = dict(headers) if headers is not None else {}
        self.request_id = request_id
        self.retry_after = retry_after
        self.cause = cause

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        if self.status_code is None:
            return str(self.args[0])
        parts = [f"{self.status_code}"]
        if self.error_code:
            parts.append(str(self.error_code))
        return " ".join(parts) + f": {self.args[0]}"


class ForceRestValidationError(ForceRestError):
    """Raised when request parameters are missing, malformed or contradictory."""

    def __init__(self, message: str, **kwargs: object) -> None:
        kwargs.setdefault("error_code", REST_ERROR_CODE)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class ForceRestConfigError(ForceRestError):
    """Raised for invalid client configuration."""


class ForceRestClientClosedError(ForceRestError):
    """Raised when a cleaned-up client is used again."""


class ForceRestHTTPError(ForceRestError):
    """Raised for HTTP non-success responses."""


class ForceRestRateLimitError(ForceRestHTTPError):
    """Raised for HTTP 429 responses."""


class ForceRestCredentialError(ForceRestError):
    """Raised when the session credential could not be refreshed."""

    domain = OAUTH_ERROR_DOMAIN


class ForceRestSessionExpiredError(ForceRestCredentialError):
    """Raised when the session is still rejected after a refresh-and-retry."""


class ForceRestNetworkError(ForceRestError):
    """Raised for transport-level failures like DNS and TCP errors."""

    domain = TRANSPORT_ERROR_DOMAIN


class ForceRestTimeoutError(ForceRestError):
    """Raised when a request exceeds configured timeout."""

    domain = TRANSPORT_ERROR_DOMAIN
