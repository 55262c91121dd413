"""Instance URL checks and log redaction."""

from __future__ import annotations

from typing import Mapping
from urllib.parse import urlparse

from .exceptions import ForceRestConfigError

SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "x-sfdc-session",
    "x-refresh-token",
}

LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}

REDACTED = "[REDACTED]"


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy of ``headers`` safe to log: session tokens and cookies are masked."""
    return {key: REDACTED if key.lower() in SENSITIVE_HEADERS else value for key, value in headers.items()}


def validate_instance_url(url: str, *, allow_http: bool = False) -> str:
    """Validate an org instance URL and return it without a trailing slash."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ForceRestConfigError("instance_url must include scheme and host")
    if parsed.scheme not in {"http", "https"}:
        raise ForceRestConfigError(f"Unsupported instance_url scheme: {parsed.scheme}")
    if parsed.scheme == "http" and not allow_http:
        host = (parsed.hostname or "").lower()
        if host not in LOCAL_HOSTS:
            raise ForceRestConfigError("Non-HTTPS instance_url is not allowed without allow_http=True")
    if "\x00" in url:
        raise ForceRestConfigError("Invalid instance_url")
    return url.rstrip("/")

