"""Per-user REST API façade and the registry that owns one per user."""

from __future__ import annotations

import asyncio
import concurrent.futures
import os
import threading
from typing import Any, Callable

import structlog

from .accounts import UserAccount, UserContext
from .dispatch import RestDispatcher
from .exceptions import ForceRestConfigError
from .factory import RestRequestFactory
from .models import UserIdentity
from .request import DEFAULT_API_VERSION, RestRequest
from .security import validate_instance_url
from .transport import DEFAULT_TIMEOUT, HttpxTransport, Transport
from .user_agent import user_agent_string

logger = structlog.get_logger(__name__)

TransportFactory = Callable[[UserAccount], Transport]

_test_run_lock = threading.Lock()
_is_test_run = False


def set_is_test_run(value: bool) -> None:
    """Mark the process as a test run; real network transports are refused while set."""
    global _is_test_run
    with _test_run_lock:
        _is_test_run = bool(value)


def is_test_run() -> bool:
    with _test_run_lock:
        return _is_test_run


def _env_timeout() -> float:
    raw = os.getenv("FORCEREST_TIMEOUT")
    if raw is None:
        return DEFAULT_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError as exc:
        raise ForceRestConfigError(f"FORCEREST_TIMEOUT must be a number, got {raw!r}") from exc
    if timeout <= 0:
        raise ForceRestConfigError("FORCEREST_TIMEOUT must be greater than 0")
    return timeout


class RestApi(RestRequestFactory):
    """Builds and sends REST requests on behalf of one user.

    Obtain instances through :class:`RestApiRegistry` so that each user has
    exactly one.
    """

    def __init__(
        self,
        user: UserAccount,
        *,
        transport: Transport,
        owns_transport: bool = False,
        api_version: str | None = None,
        user_agent: str | None = None,
        allow_http: bool = False,
        registry: "RestApiRegistry | None" = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        super().__init__(api_version=api_version or os.getenv("FORCEREST_API_VERSION") or DEFAULT_API_VERSION)
        self.user = user
        self._registry = registry
        self._dispatcher = RestDispatcher(
            instance_url=validate_instance_url(user.instance_url, allow_http=allow_http),
            credentials=user.credentials,
            transport=transport,
            owns_transport=owns_transport,
            user_agent=user_agent or user_agent_string(),
            loop=loop,
        )

    @property
    def dispatcher(self) -> RestDispatcher:
        return self._dispatcher

    @property
    def closed(self) -> bool:
        return self._dispatcher.closed

    def send(self, request: RestRequest, delegate: Any = None) -> asyncio.Future:
        return self._dispatcher.send(request, delegate)

    def send_threadsafe(self, request: RestRequest, delegate: Any = None) -> concurrent.futures.Future:
        return self._dispatcher.send_threadsafe(request, delegate)

    def cancel_all_requests(self) -> None:
        self._dispatcher.cancel_all()

    def cleanup(self) -> None:
        """Tear down after logout or host change; the instance is unusable afterwards."""
        self._dispatcher.cleanup()
        if self._registry is not None:
            self._registry._discard(self)

    async def aclose(self) -> None:
        await self._dispatcher.aclose()
        if self._registry is not None:
            self._registry._discard(self)


class RestApiRegistry:
    """Owns one :class:`RestApi` per user identity.

    Pass ``loop`` when instances will be driven from other threads with
    ``send_threadsafe`` before any in-loop ``send``.
    """

    def __init__(
        self,
        *,
        user_context: UserContext | None = None,
        transport_factory: TransportFactory | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
        allow_http: bool = False,
        user_agent: str | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._user_context = user_context
        self._transport_factory = transport_factory
        self.api_version = api_version
        self.timeout = timeout
        self.allow_http = allow_http
        self.user_agent = user_agent
        self.loop = loop
        self._lock = threading.Lock()
        self._instances: dict[UserIdentity, RestApi] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)

    def __contains__(self, user: UserAccount) -> bool:
        with self._lock:
            return user.identity in self._instances

    def _create_transport(self, user: UserAccount) -> Transport:
        if self._transport_factory is not None:
            return self._transport_factory(user)
        if is_test_run():
            raise ForceRestConfigError("network transport is disabled during test runs; pass transport_factory")
        return HttpxTransport(timeout=self.timeout or _env_timeout())

    def shared_instance_with_user(self, user: UserAccount) -> RestApi:
        with self._lock:
            api = self._instances.get(user.identity)
            if api is not None:
                return api
            validate_instance_url(user.instance_url, allow_http=self.allow_http)
            api = RestApi(
                user,
                transport=self._create_transport(user),
                owns_transport=True,
                api_version=self.api_version,
                user_agent=self.user_agent,
                allow_http=self.allow_http,
                registry=self,
                loop=self.loop,
            )
            self._instances[user.identity] = api
        logger.info("rest_api_created", user=str(user.identity), api_version=api.api_version)
        return api

    def shared_instance(self) -> RestApi | None:
        if self._user_context is None:
            return None
        user = self._user_context.current_user()
        if user is None:
            return None
        return self.shared_instance_with_user(user)

    def cleanup(self, user: UserAccount) -> None:
        with self._lock:
            api = self._instances.pop(user.identity, None)
        if api is not None:
            logger.info("rest_api_cleanup", user=str(user.identity))
            api.cleanup()

    def cleanup_all(self) -> None:
        with self._lock:
            instances = list(self._instances.values())
            self._instances.clear()
        for api in instances:
            api.cleanup()

    def _discard(self, api: RestApi) -> None:
        with self._lock:
            if self._instances.get(api.user.identity) is api:
                del self._instances[api.user.identity]
