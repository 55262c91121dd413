from __future__ import annotations

import asyncio
from typing import Any, Callable

import httpx
import pytest

from forcerest_sdk.accounts import UserAccount
from forcerest_sdk.api import set_is_test_run
from forcerest_sdk.credentials import CallbackCredentialProvider
from forcerest_sdk.dispatch import RestDispatcher
from forcerest_sdk.models import SessionCredential, UserIdentity
from forcerest_sdk.transport import HttpxTransport

INSTANCE_URL = "https://na1.example.com"

INVALID_SESSION_BODY = [{"errorCode": "INVALID_SESSION_ID", "message": "Session expired or invalid"}]


class RecordingDelegate:
    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def request_did_load(self, request, payload, response) -> None:
        self.events.append(("load", payload))

    def request_did_fail(self, request, error, response) -> None:
        self.events.append(("fail", error))

    def request_did_cancel(self, request) -> None:
        self.events.append(("cancel", None))

    def request_did_timeout(self, request) -> None:
        self.events.append(("timeout", None))


class HangingTransport:
    """Transport whose requests never complete until released."""

    def __init__(self) -> None:
        self.calls = 0
        self.release: asyncio.Event | None = None

    async def execute(self, method, url, *, headers, params=None, json=None, timeout=None) -> httpx.Response:
        self.calls += 1
        if self.release is None:
            self.release = asyncio.Event()
        await self.release.wait()
        return httpx.Response(200, json={"late": True})

    async def aclose(self) -> None:
        return None


def rotating_refresher(tokens: list[str]) -> Callable[[SessionCredential | None], Any]:
    async def refresh(previous: SessionCredential | None) -> SessionCredential:
        await asyncio.sleep(0.01)
        return SessionCredential(access_token=tokens.pop(0), refresh_token="refresh-1")

    return refresh


def make_credentials(token: str | None = "old", new_tokens: list[str] | None = None) -> CallbackCredentialProvider:
    credential = SessionCredential(access_token=token, refresh_token="refresh-1") if token else None
    return CallbackCredentialProvider(credential, rotating_refresher(new_tokens or ["new"]))


def make_dispatcher(handler, credentials: CallbackCredentialProvider) -> RestDispatcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RestDispatcher(
        instance_url=INSTANCE_URL,
        credentials=credentials,
        transport=HttpxTransport(httpx_client=client),
        user_agent="tests/1.0",
    )


def make_user(user_id: str = "005xx", credentials: CallbackCredentialProvider | None = None) -> UserAccount:
    return UserAccount(
        identity=UserIdentity(user_id=user_id, org_id="00Dxx"),
        instance_url=INSTANCE_URL,
        credentials=credentials or make_credentials(),
    )


@pytest.fixture
def delegate() -> RecordingDelegate:
    return RecordingDelegate()


@pytest.fixture(autouse=True)
def _reset_test_run():
    set_is_test_run(False)
    yield
    set_is_test_run(False)
