"""Grouping and de-duplication of classified rows into consolidated events.

Responsibilities of this stage:
- correlate bare creation rows with relationship rows naming the same entity
  inside the correlation window and fold them into the most descriptive row
- merge rows touching the same entity within the same second
- suppress repeated skill / assignment narratives per actor
- order the result newest first

Every suppressed row's id is folded into the provenance of the row that
replaced it.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from auditfeed.config.feed import FeedSettings
from auditfeed.domain.model import ConsolidatedEvent, EventKind, EventType

from .changes import merge_changes, visible_changes

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from auditfeed.domain.model import EntityReference, FieldChange, RawEvent

    from .classify import Classification

log = logging.getLogger(__name__)

_SKILL_KINDS = frozenset({EventKind.SKILL_APPLICATION, EventKind.SKILL_REMOVAL})
_PAIR_KINDS = frozenset({EventKind.RELATIONSHIP_ASSIGNMENT, EventKind.REQUIRED_SKILL_SET})
_SPACES = re.compile(r"\s+")

type DedupKey = tuple[object, ...]


@dataclass(frozen=True, slots=True)
class ClassifiedEvent:
    raw: RawEvent
    classification: Classification


@dataclass(slots=True)
class _Candidate:
    event: ClassifiedEvent
    source_ids: set[int]
    timestamp: datetime
    changes: tuple[FieldChange, ...]

    @classmethod
    def of(cls, event: ClassifiedEvent) -> _Candidate:
        return cls(
            event=event,
            source_ids={event.raw.id},
            timestamp=event.raw.timestamp,
            changes=event.raw.changes,
        )

    @property
    def raw(self) -> RawEvent:
        return self.event.raw

    @property
    def kind(self) -> EventKind:
        return self.event.classification.kind

    @property
    def recency(self) -> tuple[datetime, int]:
        return self.timestamp, max(self.source_ids)

    def absorb(self, other: _Candidate) -> None:
        self.source_ids |= other.source_ids
        self.timestamp = max(self.timestamp, other.timestamp)


def normalize_name(name: str) -> str:
    return _SPACES.sub(" ", name.strip().strip("\"'“”").casefold())


@dataclass(slots=True)
class Grouper:
    """Turn classified rows into ordered ``ConsolidatedEvent`` values."""

    settings: FeedSettings = field(default_factory=FeedSettings)

    def __call__(self, events: Iterable[ClassifiedEvent]) -> list[ConsolidatedEvent]:
        candidates = [_Candidate.of(event) for event in events]
        candidates = self.correlate(candidates)
        candidates = self.merge_same_operation(candidates)
        candidates = self.dedupe_per_actor(candidates)
        candidates.sort(key=lambda candidate: candidate.recency, reverse=True)
        return [self._consolidate(candidate) for candidate in candidates]

    # Cross-table correlation -------------------------------------------------

    def correlate(self, candidates: list[_Candidate]) -> list[_Candidate]:
        by_name: dict[str, list[int]] = defaultdict(list)
        for index, candidate in enumerate(candidates):
            for name in self._correlation_names(candidate):
                by_name[name].append(index)

        parent = list(range(len(candidates)))

        def find(index: int) -> int:
            while parent[index] != index:
                parent[index] = parent[parent[index]]
                index = parent[index]
            return index

        window = self.settings.correlation_window
        for indices in by_name.values():
            rich = [i for i in indices if not self._is_bare_creation(candidates[i])]
            if not rich:
                continue
            for index in indices:
                if index in rich:
                    continue
                stamp = candidates[index].timestamp
                nearest = min(rich, key=lambda i: abs(candidates[i].timestamp - stamp))
                if abs(candidates[nearest].timestamp - stamp) <= window:
                    parent[find(index)] = find(nearest)

        components: dict[int, list[int]] = defaultdict(list)
        for index in range(len(candidates)):
            components[find(index)].append(index)

        suppressed: set[int] = set()
        for members in components.values():
            bare = [i for i in members if self._is_bare_creation(candidates[i])]
            rich = [i for i in members if i not in bare]
            # Creation rows only correlate with a relationship row.
            if not bare or not rich:
                continue
            keeper = max(rich, key=lambda i: _descriptiveness(candidates[i]))
            for index in bare:
                candidates[keeper].absorb(candidates[index])
                suppressed.add(index)
                log.debug(
                    "Folded creation row %s into correlated row %s",
                    candidates[index].raw.id,
                    candidates[keeper].raw.id,
                )
        return [candidate for i, candidate in enumerate(candidates) if i not in suppressed]

    def _is_bare_creation(self, candidate: _Candidate) -> bool:
        return (
            candidate.raw.event_type is EventType.INSERT
            and candidate.kind.is_generic
            and self.settings.tables.is_core(candidate.raw.entity_type)
        )

    def _correlation_names(self, candidate: _Candidate) -> set[str]:
        if not (self._is_bare_creation(candidate) or not candidate.kind.is_generic):
            return set()
        classification = candidate.event.classification
        return {
            normalize_name(reference.name)
            for reference in (classification.primary_target, classification.secondary_target)
            if reference is not None and not reference.is_unknown
        }

    # Same-operation merge ----------------------------------------------------

    def merge_same_operation(self, candidates: list[_Candidate]) -> list[_Candidate]:
        buckets: dict[tuple[str, str, datetime], list[_Candidate]] = defaultdict(list)
        for candidate in candidates:
            key = (
                candidate.raw.entity_type.lower(),
                candidate.raw.entity_id,
                candidate.raw.timestamp.replace(microsecond=0),
            )
            buckets[key].append(candidate)

        merged: list[_Candidate] = []
        for bucket in buckets.values():
            if len(bucket) == 1:
                merged.append(bucket[0])
                continue
            result = self._merge_bucket(bucket)
            if result is not None:
                merged.append(result)
        return merged

    def _merge_bucket(self, bucket: Sequence[_Candidate]) -> _Candidate | None:
        ordered = sorted(bucket, key=lambda candidate: candidate.raw.id)
        others = [c for c in ordered if c.raw.event_type is not EventType.UPDATE]
        if others:
            winner = others[-1]
        else:
            winner = ordered[-1]
            winner.changes = merge_changes(candidate.changes for candidate in ordered)
            if not visible_changes(winner.changes, self.settings.housekeeping_fields):
                log.debug(
                    "Merged updates %s on %s/%s cancel out",
                    sorted(c.raw.id for c in ordered),
                    winner.raw.entity_type,
                    winner.raw.entity_id,
                )
                return None
        for candidate in ordered:
            if candidate is not winner:
                winner.absorb(candidate)
        return winner

    # Per-actor de-dup ----------------------------------------------------------

    def dedupe_per_actor(self, candidates: list[_Candidate]) -> list[_Candidate]:
        newest: dict[DedupKey, _Candidate] = {}
        result: list[_Candidate] = []
        for candidate in sorted(candidates, key=lambda c: c.recency, reverse=True):
            key = _dedup_key(candidate)
            if key is None:
                result.append(candidate)
                continue
            keeper = newest.get(key)
            if keeper is None:
                newest[key] = candidate
                result.append(candidate)
                continue
            keeper.absorb(candidate)
            log.debug(
                "Suppressed repeated %s by %s (rows %s)",
                candidate.kind,
                candidate.raw.user_id,
                sorted(candidate.source_ids),
            )
        return result

    def _consolidate(self, candidate: _Candidate) -> ConsolidatedEvent:
        raw = candidate.raw
        classification = candidate.event.classification
        return ConsolidatedEvent(
            source_event_ids=frozenset(candidate.source_ids),
            kind=classification.kind,
            event_type=raw.event_type,
            entity_type=raw.entity_type,
            entity_id=raw.entity_id,
            actor=classification.actor,
            timestamp=candidate.timestamp,
            primary_target=classification.primary_target,
            secondary_target=classification.secondary_target,
            changes=visible_changes(candidate.changes, self.settings.housekeeping_fields),
            proficiency=classification.proficiency,
            notes=classification.notes,
            role=classification.role,
            description=raw.description,
        )


def _descriptiveness(candidate: _Candidate) -> tuple[int, int, int, int]:
    classification = candidate.event.classification
    references = sum(
        1
        for reference in (classification.primary_target, classification.secondary_target)
        if reference is not None and not reference.is_unknown
    )
    has_description = int(bool(candidate.raw.description and candidate.raw.description.strip()))
    return int(not candidate.kind.is_generic), has_description, references, candidate.raw.id


def _identity(reference: EntityReference | None) -> object:
    # Resolved and name-only references to the same entity share a key.
    if reference is None or reference.is_unknown:
        return None
    return normalize_name(reference.name)


def _dedup_key(candidate: _Candidate) -> DedupKey | None:
    classification = candidate.event.classification
    actor = candidate.raw.user_id
    if candidate.kind in _SKILL_KINDS:
        skill = _identity(classification.primary_target)
        if skill is None:
            skill = ("row", candidate.raw.entity_type.lower(), candidate.raw.entity_id)
        return actor, candidate.kind, skill
    if candidate.kind in _PAIR_KINDS:
        primary = _identity(classification.primary_target)
        secondary = _identity(classification.secondary_target)
        if primary is None and secondary is None:
            return None
        return actor, candidate.kind, candidate.raw.event_type, primary, secondary
    return None
