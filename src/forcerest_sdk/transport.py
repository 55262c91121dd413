"""HTTP transport used by the dispatcher."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

import httpx

from .exceptions import ForceRestNetworkError, ForceRestTimeoutError

DEFAULT_TIMEOUT = 30.0


class Transport(Protocol):
    async def execute(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        params: Mapping[str, str] | None = None,
        json: Any = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        ...

    async def aclose(self) -> None:
        ...


class HttpxTransport:
    """Transport backed by ``httpx.AsyncClient``.

    Cancelling the task awaiting :meth:`execute` aborts the underlying request.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        follow_redirects: bool = True,
        httpx_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout
        self._owns_client = httpx_client is None
        self._httpx = httpx_client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=follow_redirects,
            trust_env=False,
        )

    async def execute(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        params: Mapping[str, str] | None = None,
        json: Any = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        try:
            return await self._httpx.request(
                method=method,
                url=url,
                headers=dict(headers),
                params=dict(params) if params else None,
                json=json,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise ForceRestTimeoutError("Request timed out", cause=exc) from exc
        except httpx.TransportError as exc:
            raise ForceRestNetworkError("Network error", cause=exc) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._httpx.aclose()
