"""Session credential providers."""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol

import structlog

from .exceptions import ForceRestCredentialError
from .models import SessionCredential

logger = structlog.get_logger(__name__)

Refresher = Callable[[SessionCredential | None], Awaitable[SessionCredential]]


class CredentialProvider(Protocol):
    def current_credential(self) -> SessionCredential | None:
        ...

    async def refresh(self) -> SessionCredential:
        ...


class CallbackCredentialProvider:
    """Holds the current credential and renews it through an async callback.

    The callback receives the credential being replaced (so it can use its
    refresh token) and returns the new one. Failures surface as
    :class:`ForceRestCredentialError`.
    """

    def __init__(self, credential: SessionCredential | None, refresher: Refresher) -> None:
        self._credential = credential
        self._refresher = refresher
        self.refresh_count = 0

    def current_credential(self) -> SessionCredential | None:
        return self._credential

    def revoke(self) -> None:
        self._credential = None

    async def refresh(self) -> SessionCredential:
        self.refresh_count += 1
        previous = self._credential
        try:
            credential = await self._refresher(previous)
        except ForceRestCredentialError:
            raise
        except Exception as exc:
            raise ForceRestCredentialError("Session refresh failed", cause=exc) from exc
        if not credential.access_token:
            raise ForceRestCredentialError("Session refresh returned an empty access token")
        self._credential = credential
        logger.info("session_refreshed", expires_at=credential.expires_at)
        return credential
