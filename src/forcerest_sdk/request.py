"""Immutable HTTP request descriptors."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from types import MappingProxyType
from typing import Any, Mapping
from urllib.parse import urlencode

DEFAULT_API_VERSION = "v42.0"
DEFAULT_REST_ENDPOINT = "/services/data"
OAUTH_ENDPOINT = "/services/oauth2"

IF_UNMODIFIED_SINCE = "If-Unmodified-Since"


class RestMethod(str, enum.Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"


def _freeze(mapping: Mapping[str, Any] | None) -> Mapping[str, str]:
    if not mapping:
        return MappingProxyType({})
    return MappingProxyType({str(key): str(value) for key, value in mapping.items()})


def format_http_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


@dataclass(frozen=True)
class RestRequest:
    """Description of one HTTP call against the REST API.

    ``path`` is resolved against ``endpoint`` when the request is sent: a path
    that already starts with the endpoint is used verbatim, any other path
    gets the endpoint prepended once.
    """

    method: RestMethod
    path: str
    endpoint: str = DEFAULT_REST_ENDPOINT
    query_params: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    api_version: str = DEFAULT_API_VERSION
    if_unmodified_since: datetime | None = None
    requires_authentication: bool = True
    parse_response: bool = True
    timeout: float | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.method, RestMethod):
            object.__setattr__(self, "method", RestMethod(str(self.method).upper()))
        object.__setattr__(self, "query_params", _freeze(self.query_params))
        object.__setattr__(self, "headers", _freeze(self.headers))

    def resolved_path(self) -> str:
        if self.endpoint and self.path.startswith(self.endpoint):
            return self.path
        return f"{self.endpoint}{self.path}"

    def query_string(self) -> str:
        return urlencode(list(self.query_params.items()))

    def relative_url(self) -> str:
        """Path plus encoded query string, as used inside batch subrequests."""
        path = self.resolved_path()
        query = self.query_string()
        return f"{path}?{query}" if query else path

    def build_headers(self, access_token: str | None = None) -> dict[str, str]:
        """Return the headers for one attempt, leaving the descriptor untouched."""
        headers = {"Accept": "application/json"}
        if self.body is not None:
            headers["Content-Type"] = "application/json"
        headers.update(self.headers)
        if self.if_unmodified_since is not None:
            headers[IF_UNMODIFIED_SINCE] = format_http_date(self.if_unmodified_since)
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers
