"""User accounts and the current-user context."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Protocol

from .credentials import CredentialProvider
from .models import UserIdentity


@dataclass(frozen=True)
class UserAccount:
    identity: UserIdentity
    instance_url: str
    credentials: CredentialProvider = field(compare=False, repr=False)
    community_id: str | None = None


class UserContext(Protocol):
    def current_user(self) -> UserAccount | None:
        ...


class InMemoryUserContext:
    """Tracks known accounts and which one is current."""

    def __init__(self, current: UserAccount | None = None) -> None:
        self._lock = threading.Lock()
        self._accounts: dict[UserIdentity, UserAccount] = {}
        self._current: UserIdentity | None = None
        if current is not None:
            self.switch_to(current)

    def current_user(self) -> UserAccount | None:
        with self._lock:
            if self._current is None:
                return None
            return self._accounts.get(self._current)

    def switch_to(self, user: UserAccount) -> None:
        with self._lock:
            self._accounts[user.identity] = user
            self._current = user.identity

    def remove(self, user: UserAccount) -> None:
        with self._lock:
            self._accounts.pop(user.identity, None)
            if self._current == user.identity:
                self._current = None
