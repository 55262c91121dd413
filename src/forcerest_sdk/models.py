"""Typed models for credentials, user identities and request payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = structlog.get_logger(__name__)


class ForceRestModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, coerce_numbers_to_str=True)


class SessionCredential(ForceRestModel):
    access_token: str
    instance_url: str | None = None
    expires_at: datetime | None = None
    refresh_token: str | None = Field(default=None, repr=False)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True when the expiry is known and already past."""
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return (now or datetime.now(timezone.utc)) >= expires_at


class UserIdentity(ForceRestModel):
    user_id: str
    org_id: str

    def __str__(self) -> str:
        return f"{self.org_id}:{self.user_id}"


class PlatformError(ForceRestModel):
    """One entry of the JSON error list returned by the platform."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    error_code: str | None = Field(default=None, alias="errorCode")
    message: str | None = None
    field_names: list[str] = Field(default_factory=list, alias="fields")

    @field_validator("field_names", mode="before")
    @classmethod
    def _null_fields(cls, value: Any) -> Any:
        return [] if value is None else value


class SObjectTree(BaseModel):
    """A record and its nested children for a composite tree request."""

    model_config = ConfigDict(extra="forbid")

    object_type: str
    reference_id: str
    object_type_plural: str | None = None
    record_fields: dict[str, Any] = Field(default_factory=dict)
    children: list["SObjectTree"] = Field(default_factory=list)

    def as_json(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "attributes": {"type": self.object_type, "referenceId": self.reference_id},
        }
        record.update(self.record_fields)
        grouped: dict[str, list[dict[str, Any]]] = {}
        for child in self.children:
            plural = child.object_type_plural or f"{child.object_type}s"
            grouped.setdefault(plural, []).append(child.as_json())
        for plural, records in grouped.items():
            record[plural] = {"records": records}
        return record


def parse_platform_errors(body: object) -> list[PlatformError]:
    """Extract platform error entries from a parsed error body."""
    if isinstance(body, Mapping):
        body = [body]
    if not isinstance(body, list):
        return []
    errors: list[PlatformError] = []
    for item in body:
        if not isinstance(item, Mapping):
            continue
        try:
            errors.append(PlatformError.model_validate(item))
        except ValidationError as exc:
            logger.debug("platform_error_skipped", error_count=exc.error_count())
    return errors
