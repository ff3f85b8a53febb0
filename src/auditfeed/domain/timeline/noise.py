"""Explicit, auditable drop rules for rows that carry no user-visible signal."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from auditfeed.config.feed import FeedSettings
from auditfeed.domain.model import EventType

from .changes import visible_changes
from .classify import ALIASES, TYPE_HINT_KEYS
from .metadata import first_text, metadata_layers, metadata_map, nested_mapping

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from auditfeed.domain.model import RawEvent

log = logging.getLogger(__name__)


class NoiseRule(StrEnum):
    EMPTY_UPDATE = "empty-update"
    SELF_TOUCH = "self-touch"
    JOIN_ROW_ARTIFACT = "join-row-artifact"
    DUPLICATE_CREATION = "duplicate-creation"


@dataclass(frozen=True, slots=True)
class NoiseFilterResult:
    kept: list[RawEvent]
    dropped: Mapping[int, NoiseRule]


@dataclass(slots=True)
class NoiseFilter:
    """Pure, order-preserving filter; any single rule is enough to drop a row."""

    settings: FeedSettings = field(default_factory=FeedSettings)

    def __call__(self, events: Iterable[RawEvent]) -> list[RawEvent]:
        return self.partition(events).kept

    def partition(self, events: Iterable[RawEvent]) -> NoiseFilterResult:
        rows = list(events)
        dropped: dict[int, NoiseRule] = {}
        for raw in rows:
            rule = self.row_rule(raw)
            if rule is not None:
                dropped[raw.id] = rule

        for raw_id in self._duplicate_creations(row for row in rows if row.id not in dropped):
            dropped[raw_id] = NoiseRule.DUPLICATE_CREATION

        for raw in rows:
            rule = dropped.get(raw.id)
            if rule is not None:
                log.debug(
                    "Dropping raw event %s (%s %s/%s): %s",
                    raw.id,
                    raw.event_type,
                    raw.entity_type,
                    raw.entity_id,
                    rule,
                )
        kept = [raw for raw in rows if raw.id not in dropped]
        return NoiseFilterResult(kept=kept, dropped=dropped)

    def row_rule(self, raw: RawEvent) -> NoiseRule | None:
        """Return the first single-row rule ``raw`` satisfies."""

        if raw.event_type is EventType.UPDATE:
            if not self.has_visible_change(raw):
                return NoiseRule.EMPTY_UPDATE
            if self._is_silent_self_touch(raw):
                return NoiseRule.SELF_TOUCH
        if raw.event_type is EventType.INSERT and self._is_join_row_artifact(raw):
            return NoiseRule.JOIN_ROW_ARTIFACT
        return None

    def has_visible_change(self, raw: RawEvent) -> bool:
        housekeeping = self.settings.housekeeping_fields
        return any(
            change.field not in housekeeping and not change.is_noop for change in raw.changes
        )

    def _is_silent_self_touch(self, raw: RawEvent) -> bool:
        # A person editing their own profile is kept when a displayed field changed.
        if not self.settings.tables.is_person(raw.entity_type) or raw.entity_id != raw.user_id:
            return False
        return not visible_changes(raw.changes, self.settings.housekeeping_fields)

    def _is_join_row_artifact(self, raw: RawEvent) -> bool:
        if not self.settings.applies_artifact_rule(raw.entity_type):
            return False
        if not raw.entity_id.strip().isdigit():
            return False
        return not _has_relationship_signal(raw)

    @staticmethod
    def _duplicate_creations(rows: Iterable[RawEvent]) -> list[int]:
        latest: dict[tuple[str, str, str], RawEvent] = {}
        duplicates: list[int] = []
        for raw in rows:
            if raw.event_type is not EventType.INSERT:
                continue
            key = (raw.user_id, raw.entity_type.lower(), raw.entity_id)
            current = latest.get(key)
            if current is None:
                latest[key] = raw
            elif (raw.timestamp, raw.id) > (current.timestamp, current.id):
                duplicates.append(current.id)
                latest[key] = raw
            else:
                duplicates.append(raw.id)
        return duplicates


def _has_relationship_signal(raw: RawEvent) -> bool:
    layers = metadata_layers(metadata_map(raw))
    for layer in layers:
        if first_text(layer, TYPE_HINT_KEYS) is not None:
            return True
        for aliases in ALIASES.values():
            if first_text(layer, aliases.ids) or first_text(layer, aliases.names):
                return True
            if any(nested_mapping(layer, key) for key in aliases.nested):
                return True
    description = (raw.description or "").strip()
    if not description:
        return False
    generic = re.compile(
        rf"^created\s+{re.escape(raw.entity_type)}\s+{re.escape(raw.entity_id.strip())}\s*\.?$",
        re.IGNORECASE,
    )
    return generic.match(description) is None


__all__ = ["NoiseFilter", "NoiseFilterResult", "NoiseRule"]
