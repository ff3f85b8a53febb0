"""Pydantic models describing audit-log and reference rows."""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime
from logging import getLogger
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

log = getLogger(__name__)

# Labels written by older triggers, mapped onto the CRUD event types.
LEGACY_EVENT_TYPES: Mapping[str, str] = {
    "INSERT": "INSERT",
    "CREATE": "INSERT",
    "CREATED": "INSERT",
    "INSERTED": "INSERT",
    "UPDATE": "UPDATE",
    "UPDATED": "UPDATE",
    "DELETE": "DELETE",
    "DELETED": "DELETE",
    "REMOVED": "DELETE",
    "SKILL_APPLIED": "INSERT",
    "SKILL_REQUIRED": "INSERT",
    "USER_ASSIGNED": "INSERT",
    "SKILL_UPDATED": "UPDATE",
    "SKILL_REMOVED": "DELETE",
    "SKILL_ENDED": "DELETE",
}
CRUD_LABELS = frozenset(
    {"INSERT", "CREATE", "CREATED", "INSERTED", "UPDATE", "UPDATED", "DELETE", "DELETED", "REMOVED"}
)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class AuditFeedBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class FieldChangePayload(AuditFeedBaseModel):
    field: str = Field(min_length=1)
    old_value: object = Field(default=None, alias="oldValue")
    new_value: object = Field(default=None, alias="newValue")


class AuditLogRow(AuditFeedBaseModel):
    id: int
    event_type: str
    entity_type: str
    entity_id: str
    user_id: str = ""
    event_time: datetime = Field(alias="timestamp")
    description: str | None = None
    changes: list[FieldChangePayload] = Field(default_factory=list)
    metadata: object = None

    _normalize_description = field_validator("description", mode="before")(_blank_to_none)

    @field_validator("entity_id", "user_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("event_type", mode="before")
    @classmethod
    def _upper_label(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("changes", mode="before")
    @classmethod
    def _parse_changes(cls, value: object) -> object:
        return _coerce_changes(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _decode_metadata(cls, value: object) -> object:
        if isinstance(value, str):
            if not value.strip():
                return None
            try:
                decoded = json.loads(value)
            except ValueError:
                log.debug("Undecodable audit-log metadata replaced by an empty map")
                return {}
            return decoded if isinstance(decoded, Mapping) else {}
        return value

    @property
    def crud_event_type(self) -> str | None:
        return LEGACY_EVENT_TYPES.get(self.event_type)

    @property
    def legacy_label(self) -> str | None:
        """The semantic label an older trigger wrote instead of a CRUD type."""

        if self.event_type in CRUD_LABELS or self.event_type not in LEGACY_EVENT_TYPES:
            return None
        return self.event_type


def _coerce_changes(value: object) -> list[dict[str, object]]:
    """Accept a list of change objects or a ``{field: {old, new}}`` map.

    Malformed entries are skipped.
    """

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            log.debug("Undecodable audit-log changes ignored")
            return []
    if value is None:
        return []

    entries: list[dict[str, object]] = []
    if isinstance(value, Mapping):
        for field_name, diff in cast(Mapping[object, object], value).items():
            if not isinstance(diff, Mapping):
                continue
            diff_map = cast(Mapping[str, object], diff)
            entries.append(
                {
                    "field": str(field_name),
                    "old_value": diff_map.get("old", diff_map.get("old_value")),
                    "new_value": diff_map.get("new", diff_map.get("new_value")),
                }
            )
    elif isinstance(value, list):
        entries.extend(
            dict(cast(Mapping[str, object], item))
            for item in cast(list[object], value)
            if isinstance(item, Mapping)
        )

    valid: list[dict[str, object]] = []
    for entry in entries:
        try:
            FieldChangePayload.model_validate(entry)
        except ValidationError:
            log.debug("Skipping malformed change entry %r", entry)
            continue
        valid.append(entry)
    return valid


class ProfileRow(AuditFeedBaseModel):
    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None

    _normalize_names = field_validator("first_name", "last_name", "email", mode="before")(
        _blank_to_none
    )

    @property
    def display_name(self) -> str:
        parts = [part for part in (self.first_name, self.last_name) if part]
        if parts:
            return " ".join(parts)
        return self.email or ""


class NamedRow(AuditFeedBaseModel):
    id: str
    name: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value


type AuditLogRowInput = AuditLogRow | Mapping[str, object]
