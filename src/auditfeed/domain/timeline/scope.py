"""Per-entity feed scopes and window selection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from auditfeed.config.feed import TableTaxonomy
from auditfeed.domain.model import ReferenceKind

from .classify import ALIASES, table_kind
from .metadata import as_text, first_text, metadata_layers, metadata_map, nested_mapping

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from auditfeed.domain.model import RawEvent


@dataclass(frozen=True, slots=True)
class FeedScope:
    """The entity whose activity feed is being computed."""

    kind: ReferenceKind
    id: str

    def __str__(self) -> str:
        return f"{self.kind}:{self.id}"


@dataclass(frozen=True, slots=True)
class FeedRequest:
    scope: FeedScope | None = None
    since: datetime | None = None
    until: datetime | None = None
    limit: int = 200


def referenced_ids(raw: RawEvent, kind: ReferenceKind) -> set[str]:
    """Ids of ``kind`` that ``raw`` mentions in its metadata or field changes."""

    aliases = ALIASES[kind]
    found: set[str] = set()
    for layer in metadata_layers(metadata_map(raw)):
        for key in aliases.nested:
            inner = nested_mapping(layer, key)
            if inner is not None:
                nested_id = first_text(inner, ("id", "uuid"))
                if nested_id is not None:
                    found.add(nested_id)
        for alias in aliases.ids:
            value = as_text(layer.get(alias))
            if value is not None:
                found.add(value)
    for change in raw.changes:
        if change.field in aliases.change_fields:
            for value in (change.old_value, change.new_value):
                text = as_text(value)
                if text is not None:
                    found.add(text)
    return found


def is_relevant(
    raw: RawEvent, scope: FeedScope, tables: TableTaxonomy | None = None
) -> bool:
    tables = tables or TableTaxonomy()
    target = scope.id.strip().casefold()
    if table_kind(tables, raw.entity_type) is scope.kind and raw.entity_id.casefold() == target:
        return True
    if scope.kind is ReferenceKind.USER and raw.user_id.casefold() == target:
        return True
    return any(value.casefold() == target for value in referenced_ids(raw, scope.kind))


def select_window(
    events: Iterable[RawEvent],
    scope: FeedScope | None,
    tables: TableTaxonomy | None = None,
) -> list[RawEvent]:
    """Keep the rows relevant to ``scope``, de-duplicated by raw id, in input order."""

    seen: set[int] = set()
    selected: list[RawEvent] = []
    for raw in events:
        if raw.id in seen:
            continue
        if scope is not None and not is_relevant(raw, scope, tables):
            continue
        seen.add(raw.id)
        selected.append(raw)
    return selected
