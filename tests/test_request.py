from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from forcerest_sdk.request import RestMethod, RestRequest


def test_path_without_prefix_gets_prefix_once() -> None:
    request = RestRequest(method=RestMethod.GET, path="/v42.0/sobjects/")
    assert request.resolved_path() == "/services/data/v42.0/sobjects/"


def test_path_with_prefix_is_used_verbatim() -> None:
    request = RestRequest(method=RestMethod.GET, path="/services/data/v42.0/sobjects/")
    assert request.resolved_path() == "/services/data/v42.0/sobjects/"


def test_prefix_follows_custom_endpoint() -> None:
    request = RestRequest(method=RestMethod.POST, path="/apexrest/orders", endpoint="/services")
    assert request.resolved_path() == "/services/apexrest/orders"
    changed = dataclasses.replace(request, endpoint="/custom")
    assert changed.resolved_path() == "/custom/apexrest/orders"


def test_request_is_immutable() -> None:
    request = RestRequest(method="patch", path="/x", headers={"X-Test": "1"}, query_params={"q": "a"})
    assert request.method is RestMethod.PATCH
    with pytest.raises(dataclasses.FrozenInstanceError):
        request.path = "/y"  # type: ignore[misc]
    with pytest.raises(TypeError):
        request.headers["X-Test"] = "2"  # type: ignore[index]
    with pytest.raises(TypeError):
        request.query_params["q"] = "b"  # type: ignore[index]


def test_unknown_method_is_rejected() -> None:
    with pytest.raises(ValueError):
        RestRequest(method="TRACE", path="/")


def test_build_headers_injects_auth_and_conditional_header() -> None:
    since = datetime(2024, 1, 2, 4, 4, 5, tzinfo=timezone(timedelta(hours=1)))
    request = RestRequest(
        method=RestMethod.PATCH,
        path="/v42.0/sobjects/Account/001xx",
        body={"Name": "Acme"},
        headers={"Authorization": "Bearer caller-supplied", "X-Custom": "yes"},
        if_unmodified_since=since,
    )

    headers = request.build_headers("token-1")

    assert headers["Authorization"] == "Bearer token-1"
    assert headers["If-Unmodified-Since"] == "Tue, 02 Jan 2024 03:04:05 GMT"
    assert headers["Content-Type"] == "application/json"
    assert headers["X-Custom"] == "yes"
    assert request.headers["Authorization"] == "Bearer caller-supplied"


def test_relative_url_keeps_query_order() -> None:
    request = RestRequest(
        method=RestMethod.GET,
        path="/v42.0/query",
        query_params={"q": "SELECT Id FROM Account", "batchSize": "200"},
    )
    assert request.relative_url() == "/services/data/v42.0/query?q=SELECT+Id+FROM+Account&batchSize=200"
