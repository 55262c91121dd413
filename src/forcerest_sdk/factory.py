"""Factory methods producing one validated ``RestRequest`` per REST resource."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Sequence
from urllib.parse import quote

from .exceptions import ForceRestValidationError
from .models import SObjectTree
from .request import (
    DEFAULT_API_VERSION,
    DEFAULT_REST_ENDPOINT,
    OAUTH_ENDPOINT,
    RestMethod,
    RestRequest,
)

DEFAULT_LAYOUT_TYPE = "Full"


def _require(value: str | None, name: str) -> str:
    if value is None or not str(value).strip():
        raise ForceRestValidationError(f"{name} is required")
    return str(value)


def _segment(value: str) -> str:
    return quote(value, safe="")


def _coerce_fields(fields: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if fields is None:
        return None
    if not isinstance(fields, Mapping):
        raise ForceRestValidationError("fields must be a mapping")
    return dict(fields)


def _version_relative_url(request: RestRequest) -> str:
    """URL of a batch subrequest, relative to the REST endpoint."""
    url = request.relative_url()
    if request.endpoint and url.startswith(request.endpoint):
        url = url[len(request.endpoint) :]
    return url.lstrip("/")


class RestRequestFactory:
    """Builds request descriptors for the standard REST API.

    Construction is pure: nothing here talks to the network or reads the
    session credential.
    """

    def __init__(self, *, api_version: str = DEFAULT_API_VERSION, endpoint: str = DEFAULT_REST_ENDPOINT) -> None:
        self.api_version = api_version
        self.endpoint = endpoint

    def _request(
        self,
        method: RestMethod,
        path: str,
        *,
        query: Mapping[str, str | None] | None = None,
        body: Any = None,
        endpoint: str | None = None,
        **kwargs: Any,
    ) -> RestRequest:
        params = {key: value for key, value in (query or {}).items() if value is not None}
        return RestRequest(
            method=method,
            path=path,
            endpoint=self.endpoint if endpoint is None else endpoint,
            query_params=params,
            body=body,
            api_version=self.api_version,
            **kwargs,
        )

    def _versioned(self, suffix: str) -> str:
        return f"/{self.api_version}/{suffix}"

    def request_for_user_info(self) -> RestRequest:
        return self._request(RestMethod.GET, "/userinfo", endpoint=OAUTH_ENDPOINT)

    def request_for_versions(self) -> RestRequest:
        return self._request(RestMethod.GET, "/")

    def request_for_resources(self) -> RestRequest:
        return self._request(RestMethod.GET, self._versioned(""))

    def request_for_describe_global(self) -> RestRequest:
        return self._request(RestMethod.GET, self._versioned("sobjects/"))

    def request_for_metadata(self, object_type: str) -> RestRequest:
        object_type = _require(object_type, "object_type")
        return self._request(RestMethod.GET, self._versioned(f"sobjects/{_segment(object_type)}/"))

    def request_for_describe(self, object_type: str) -> RestRequest:
        object_type = _require(object_type, "object_type")
        return self._request(RestMethod.GET, self._versioned(f"sobjects/{_segment(object_type)}/describe/"))

    def request_for_layout(self, object_type: str, layout_type: str | None = None) -> RestRequest:
        object_type = _require(object_type, "object_type")
        return self._request(
            RestMethod.GET,
            self._versioned(f"ui-api/layout/{_segment(object_type)}"),
            query={"layoutType": layout_type or DEFAULT_LAYOUT_TYPE},
        )

    def request_for_retrieve(self, object_type: str, object_id: str, field_list: str | None = None) -> RestRequest:
        object_type = _require(object_type, "object_type")
        object_id = _require(object_id, "object_id")
        return self._request(
            RestMethod.GET,
            self._versioned(f"sobjects/{_segment(object_type)}/{_segment(object_id)}"),
            query={"fields": field_list or None},
        )

    def request_for_create(self, object_type: str, fields: Mapping[str, Any] | None = None) -> RestRequest:
        object_type = _require(object_type, "object_type")
        return self._request(
            RestMethod.POST,
            self._versioned(f"sobjects/{_segment(object_type)}"),
            body=_coerce_fields(fields) or {},
        )

    def request_for_upsert(
        self,
        object_type: str,
        external_id_field: str,
        external_id: str | None,
        fields: Mapping[str, Any],
    ) -> RestRequest:
        """Create or update a record keyed on an external id field.

        Without an external id the record is created through the external id
        field resource; an empty external id is rejected.
        """
        object_type = _require(object_type, "object_type")
        external_id_field = _require(external_id_field, "external_id_field")
        body = _coerce_fields(fields)
        if body is None:
            raise ForceRestValidationError("fields are required for upsert")
        base = f"sobjects/{_segment(object_type)}/{_segment(external_id_field)}"
        if external_id is None:
            return self._request(RestMethod.POST, self._versioned(base), body=body)
        if not external_id.strip():
            raise ForceRestValidationError("external_id must not be empty; pass None to create")
        return self._request(RestMethod.PATCH, self._versioned(f"{base}/{_segment(external_id)}"), body=body)

    def request_for_update(
        self,
        object_type: str,
        object_id: str,
        fields: Mapping[str, Any] | None = None,
        if_unmodified_since: datetime | None = None,
    ) -> RestRequest:
        object_type = _require(object_type, "object_type")
        object_id = _require(object_id, "object_id")
        return self._request(
            RestMethod.PATCH,
            self._versioned(f"sobjects/{_segment(object_type)}/{_segment(object_id)}"),
            body=_coerce_fields(fields) or {},
            if_unmodified_since=if_unmodified_since,
        )

    def request_for_delete(self, object_type: str, object_id: str) -> RestRequest:
        object_type = _require(object_type, "object_type")
        object_id = _require(object_id, "object_id")
        return self._request(
            RestMethod.DELETE,
            self._versioned(f"sobjects/{_segment(object_type)}/{_segment(object_id)}"),
        )

    def request_for_query(self, soql: str) -> RestRequest:
        return self._request(RestMethod.GET, self._versioned("query"), query={"q": _require(soql, "soql")})

    def request_for_query_all(self, soql: str) -> RestRequest:
        return self._request(RestMethod.GET, self._versioned("queryAll"), query={"q": _require(soql, "soql")})

    def request_for_search(self, sosl: str) -> RestRequest:
        return self._request(RestMethod.GET, self._versioned("search"), query={"q": _require(sosl, "sosl")})

    def request_for_search_scope_and_order(self) -> RestRequest:
        return self._request(RestMethod.GET, self._versioned("search/scopeOrder"))

    def request_for_search_result_layout(self, object_list: str) -> RestRequest:
        return self._request(
            RestMethod.GET,
            self._versioned("search/layout"),
            query={"q": _require(object_list, "object_list")},
        )

    def batch_request(self, requests: Sequence[RestRequest], halt_on_error: bool = False) -> RestRequest:
        if not requests:
            raise ForceRestValidationError("batch requires at least one subrequest")
        batch: list[dict[str, Any]] = []
        for request in requests:
            entry: dict[str, Any] = {"method": request.method.value, "url": _version_relative_url(request)}
            if request.body is not None:
                entry["richInput"] = request.body
            batch.append(entry)
        return self._request(
            RestMethod.POST,
            self._versioned("composite/batch"),
            body={"batchRequests": batch, "haltOnError": bool(halt_on_error)},
        )

    def composite_request(
        self,
        requests: Sequence[RestRequest],
        ref_ids: Sequence[str],
        all_or_none: bool = False,
    ) -> RestRequest:
        if not requests:
            raise ForceRestValidationError("composite requires at least one subrequest")
        if ref_ids is None:
            raise ForceRestValidationError("ref_ids is required")
        if len(requests) != len(ref_ids):
            raise ForceRestValidationError(
                f"composite requires one reference id per subrequest ({len(requests)} requests, {len(ref_ids)} ref ids)"
            )
        composite: list[dict[str, Any]] = []
        for request, ref_id in zip(requests, ref_ids):
            entry: dict[str, Any] = {
                "method": request.method.value,
                "url": request.relative_url(),
                "referenceId": _require(ref_id, "ref_id"),
            }
            if request.body is not None:
                entry["body"] = request.body
            composite.append(entry)
        return self._request(
            RestMethod.POST,
            self._versioned("composite"),
            body={"allOrNone": bool(all_or_none), "compositeRequest": composite},
        )

    def request_for_sobject_tree(self, object_type: str, object_trees: Sequence[SObjectTree]) -> RestRequest:
        object_type = _require(object_type, "object_type")
        if not object_trees:
            raise ForceRestValidationError("object_trees must not be empty")
        return self._request(
            RestMethod.POST,
            self._versioned(f"composite/tree/{_segment(object_type)}"),
            body={"records": [tree.as_json() for tree in object_trees]},
        )
