"""Terminal outcomes of a dispatched request and the delegate contract."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Union

import httpx

from .exceptions import ForceRestError
from .request import RestRequest


@dataclass(frozen=True)
class RestSuccess:
    payload: Any
    response: httpx.Response


@dataclass(frozen=True)
class RestFailure:
    error: ForceRestError
    response: httpx.Response | None = None


@dataclass(frozen=True)
class RestCancelled:
    pass


@dataclass(frozen=True)
class RestTimedOut:
    pass


RestOutcome = Union[RestSuccess, RestFailure, RestCancelled, RestTimedOut]


class RestDelegate(Protocol):
    """Receives exactly one of the four notifications per sent request.

    Every method is optional; a delegate may implement only the ones it
    cares about.
    """

    def request_did_load(self, request: RestRequest, payload: Any, response: httpx.Response) -> None:
        ...

    def request_did_fail(self, request: RestRequest, error: ForceRestError, response: httpx.Response | None) -> None:
        ...

    def request_did_cancel(self, request: RestRequest) -> None:
        ...

    def request_did_timeout(self, request: RestRequest) -> None:
        ...


def notify_delegate(delegate: object, request: RestRequest, outcome: RestOutcome) -> None:
    if delegate is None:
        return
    if isinstance(outcome, RestSuccess):
        callback = getattr(delegate, "request_did_load", None)
        if callback is not None:
            callback(request, outcome.payload, outcome.response)
    elif isinstance(outcome, RestFailure):
        callback = getattr(delegate, "request_did_fail", None)
        if callback is not None:
            callback(request, outcome.error, outcome.response)
    elif isinstance(outcome, RestCancelled):
        callback = getattr(delegate, "request_did_cancel", None)
        if callback is not None:
            callback(request)
    else:
        callback = getattr(delegate, "request_did_timeout", None)
        if callback is not None:
            callback(request)
