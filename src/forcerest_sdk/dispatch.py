"""Authenticated dispatch of REST requests.

A request moves through ``PENDING -> AWAITING_REFRESH -> RESENT -> TERMINAL``.
Only the first session rejection sends it back through the credential
provider; ``retry_count`` never exceeds one. Every submitted request resolves
to exactly one outcome, delivered on the dispatcher's event loop.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import enum
import itertools
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from types import MappingProxyType
from typing import Any

import httpx
import structlog

from .credentials import CredentialProvider
from .exceptions import (
    ForceRestClientClosedError,
    ForceRestConfigError,
    ForceRestCredentialError,
    ForceRestError,
    ForceRestHTTPError,
    ForceRestNetworkError,
    ForceRestRateLimitError,
    ForceRestSessionExpiredError,
    ForceRestTimeoutError,
)
from .models import SessionCredential, parse_platform_errors
from .outcomes import (
    RestCancelled,
    RestFailure,
    RestOutcome,
    RestSuccess,
    RestTimedOut,
    notify_delegate,
)
from .request import RestRequest
from .security import sanitize_headers
from .transport import Transport

logger = structlog.get_logger(__name__)

MAX_SESSION_RETRIES = 1
INVALID_SESSION_ERROR_CODE = "INVALID_SESSION_ID"


class RequestState(str, enum.Enum):
    PENDING = "pending"
    AWAITING_REFRESH = "awaiting_refresh"
    RESENT = "resent"
    TERMINAL = "terminal"


@dataclass(eq=False)
class InFlightRequest:
    id: int
    request: RestRequest
    delegate: Any
    future: asyncio.Future
    state: RequestState = RequestState.PENDING
    retry_count: int = 0
    cancelled: bool = False
    settled: bool = False
    task: asyncio.Task | None = field(default=None, repr=False)


def is_status_code_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def is_status_code_not_found(status_code: int) -> bool:
    return status_code == 404


def _parse_body(response: httpx.Response, *, parse: bool = True) -> Any:
    if not parse:
        return response.content
    if response.status_code == 204 or not response.content:
        return None
    content_type = response.headers.get("content-type", "").lower()
    if "json" not in content_type:
        return response.text
    return response.json()


def _error_body(response: httpx.Response) -> Any:
    try:
        return _parse_body(response)
    except ValueError:
        return response.text or None


def is_session_expired(response: httpx.Response) -> bool:
    """True for a 401, or an error payload naming an invalid session."""
    if response.status_code == 401:
        return True
    if response.status_code < 400:
        return False
    return any(
        error.error_code == INVALID_SESSION_ERROR_CODE for error in parse_platform_errors(_error_body(response))
    )


def retry_after_seconds(response: httpx.Response, now: datetime | None = None) -> float | None:
    """Seconds to wait according to Retry-After, given as a delay or an HTTP date."""
    raw = response.headers.get("Retry-After", "").strip()
    if not raw:
        return None
    if raw.replace(".", "", 1).lstrip("-").isdigit():
        return max(0.0, float(raw))
    try:
        when = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - (now or datetime.now(timezone.utc))).total_seconds())


def http_error(response: httpx.Response, error_cls: type[ForceRestError] = ForceRestHTTPError) -> ForceRestError:
    body = _error_body(response)
    errors = parse_platform_errors(body)
    message = "request failed"
    error_code = None
    if errors:
        message = errors[0].message or message
        error_code = errors[0].error_code
    elif isinstance(body, str) and body:
        message = body

    retry_after = retry_after_seconds(response)
    if error_cls is ForceRestHTTPError and response.status_code == 429:
        error_cls = ForceRestRateLimitError
    return error_cls(
        message,
        status_code=response.status_code,
        error_code=error_code,
        body=body,
        headers=MappingProxyType(dict(response.headers)),
        request_id=response.headers.get("sforce-request-id") or response.headers.get("x-request-id"),
        retry_after=retry_after,
    )


def _log_refresh_result(task: asyncio.Task) -> None:
    # Read the exception even when every waiter was cancelled.
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("session_refresh_failed", error=str(exc))


class RestDispatcher:
    """Sends requests for one user and routes each to a single outcome.

    The dispatcher binds to the event loop of its first ``send`` (or the
    ``loop`` given at construction); delegates are always notified and futures
    always resolved on that loop. Other threads submit through
    :meth:`send_threadsafe`.
    """

    def __init__(
        self,
        *,
        instance_url: str,
        credentials: CredentialProvider,
        transport: Transport,
        owns_transport: bool = False,
        user_agent: str | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.instance_url = instance_url.rstrip("/")
        self._credentials = credentials
        self._transport = transport
        self._owns_transport = owns_transport
        self._user_agent = user_agent
        self._loop = loop
        self._lock = threading.Lock()
        self._in_flight: dict[int, InFlightRequest] = {}
        self._ids = itertools.count(1)
        self._refresh_task: asyncio.Task | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_flight_count(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def send(self, request: RestRequest, delegate: Any = None) -> asyncio.Future:
        """Submit ``request`` and return a future resolving to its outcome.

        Must be called from the dispatcher's event loop.
        """
        loop = asyncio.get_running_loop()
        if self._loop is None:
            self._loop = loop
        elif self._loop is not loop:
            raise ForceRestConfigError("send() called outside the dispatcher's event loop; use send_threadsafe()")

        with self._lock:
            if self._closed:
                raise ForceRestClientClosedError("dispatcher has been cleaned up")
            inflight = InFlightRequest(
                id=next(self._ids),
                request=request,
                delegate=delegate,
                future=loop.create_future(),
            )
            self._in_flight[inflight.id] = inflight
        inflight.task = loop.create_task(self._run(inflight))
        return inflight.future

    def send_threadsafe(self, request: RestRequest, delegate: Any = None) -> concurrent.futures.Future:
        if self._loop is None:
            raise ForceRestConfigError("dispatcher is not bound to an event loop yet")
        if self._closed:
            raise ForceRestClientClosedError("dispatcher has been cleaned up")

        async def submit() -> RestOutcome:
            return await self.send(request, delegate)

        return asyncio.run_coroutine_threadsafe(submit(), self._loop)

    def cancel_all(self) -> None:
        with self._lock:
            cancelled = list(self._in_flight.values())
            self._in_flight.clear()
            for inflight in cancelled:
                inflight.cancelled = True
                inflight.settled = True
                inflight.state = RequestState.TERMINAL
        if not cancelled:
            return
        logger.info("requests_cancelled", count=len(cancelled))
        if self._on_loop():
            self._abort(cancelled)
        elif self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._abort, cancelled)

    def cleanup(self) -> None:
        """Cancel everything in flight and release the dispatcher for good."""
        if not self._shutdown():
            return
        if not self._owns_transport or self._loop is None or self._loop.is_closed():
            return
        if self._on_loop():
            self._loop.create_task(self._transport.aclose())
        else:
            asyncio.run_coroutine_threadsafe(self._transport.aclose(), self._loop)

    async def aclose(self) -> None:
        if self._shutdown() and self._owns_transport:
            await self._transport.aclose()

    def _shutdown(self) -> bool:
        self.cancel_all()
        with self._lock:
            if self._closed:
                return False
            self._closed = True
        refresh_task, self._refresh_task = self._refresh_task, None
        if refresh_task is not None:
            if self._on_loop():
                refresh_task.cancel()
            elif self._loop is not None and not self._loop.is_closed():
                self._loop.call_soon_threadsafe(refresh_task.cancel)
        return True

    def _on_loop(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _abort(self, cancelled: list[InFlightRequest]) -> None:
        for inflight in cancelled:
            if inflight.task is not None:
                inflight.task.cancel()
            self._deliver(inflight, RestCancelled())

    def _finish(self, inflight: InFlightRequest, outcome: RestOutcome) -> None:
        with self._lock:
            if inflight.settled:
                return
            inflight.settled = True
            inflight.state = RequestState.TERMINAL
            self._in_flight.pop(inflight.id, None)
        self._deliver(inflight, outcome)

    def _deliver(self, inflight: InFlightRequest, outcome: RestOutcome) -> None:
        try:
            notify_delegate(inflight.delegate, inflight.request, outcome)
        except Exception:
            logger.exception("delegate_failed", request_id=inflight.id)
        if not inflight.future.done():
            inflight.future.set_result(outcome)

    async def _run(self, inflight: InFlightRequest) -> None:
        try:
            outcome = await self._attempt(inflight)
        except asyncio.CancelledError:
            self._finish(inflight, RestCancelled())
            raise
        except Exception as exc:
            logger.exception("dispatch_failed", request_id=inflight.id)
            error = exc if isinstance(exc, ForceRestError) else ForceRestError(str(exc), cause=exc)
            outcome = RestFailure(error)
        self._finish(inflight, outcome)

    async def _attempt(self, inflight: InFlightRequest) -> RestOutcome:
        request = inflight.request
        credential: SessionCredential | None = None
        if request.requires_authentication:
            credential = self._credentials.current_credential()
            if credential is None or credential.is_expired():
                inflight.state = RequestState.AWAITING_REFRESH
                inflight.retry_count += 1
                try:
                    credential = await self._refresh(None)
                except ForceRestCredentialError as exc:
                    return RestFailure(exc)
                inflight.state = RequestState.RESENT

        while True:
            token = credential.access_token if credential is not None else None
            try:
                response = await self._transmit(inflight, token)
            except ForceRestTimeoutError:
                logger.info("request_timed_out", request_id=inflight.id)
                return RestTimedOut()
            except ForceRestNetworkError as exc:
                return RestFailure(exc)

            if is_status_code_success(response.status_code):
                return RestSuccess(_parse_body(response, parse=request.parse_response), response)

            if not request.requires_authentication or not is_session_expired(response):
                return RestFailure(http_error(response), response)

            if inflight.retry_count >= MAX_SESSION_RETRIES:
                logger.warning("session_still_invalid", request_id=inflight.id)
                return RestFailure(http_error(response, ForceRestSessionExpiredError), response)

            inflight.state = RequestState.AWAITING_REFRESH
            inflight.retry_count += 1
            logger.info("session_expired", request_id=inflight.id, status_code=response.status_code)
            try:
                credential = await self._refresh(token)
            except ForceRestCredentialError as exc:
                return RestFailure(exc, response)
            inflight.state = RequestState.RESENT

    async def _transmit(self, inflight: InFlightRequest, token: str | None) -> httpx.Response:
        request = inflight.request
        headers = request.build_headers(token)
        if self._user_agent:
            headers.setdefault("User-Agent", self._user_agent)
        url = f"{self.instance_url}{request.resolved_path()}"
        logger.debug(
            "request_sent",
            request_id=inflight.id,
            method=request.method.value,
            url=url,
            state=inflight.state.value,
            headers=sanitize_headers(headers),
        )
        response = await self._transport.execute(
            request.method.value,
            url,
            headers=headers,
            params=request.query_params or None,
            json=request.body,
            timeout=request.timeout,
        )
        logger.debug("response_received", request_id=inflight.id, status_code=response.status_code)
        return response

    async def _refresh(self, stale_token: str | None) -> SessionCredential:
        """Return a fresh credential, sharing one refresh among all waiters."""
        current = self._credentials.current_credential()
        if (
            stale_token is not None
            and current is not None
            and current.access_token != stale_token
            and not current.is_expired()
        ):
            return current
        if self._refresh_task is None:
            self._refresh_task = asyncio.get_running_loop().create_task(self._run_refresh())
            self._refresh_task.add_done_callback(_log_refresh_result)
        return await asyncio.shield(self._refresh_task)

    async def _run_refresh(self) -> SessionCredential:
        logger.info("session_refresh_started")
        try:
            return await self._credentials.refresh()
        except ForceRestCredentialError:
            raise
        except Exception as exc:
            raise ForceRestCredentialError("Session refresh failed", cause=exc) from exc
        finally:
            self._refresh_task = None
