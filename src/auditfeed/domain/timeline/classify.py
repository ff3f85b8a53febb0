"""Semantic classification of single change-log rows.

Responsibilities of this stage:
- assign an ``EventKind`` from the table name, an explicit type hint, or
  description keywords, falling back to the generic CRUD kinds
- extract skill / organization / user references through a strict priority
  chain: nested metadata, flat metadata aliases, field changes, the row's own
  table, description patterns
- recover proficiency, notes and assignment role

A missing reference is a valid outcome; nothing here raises on bad input.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from auditfeed.config.feed import TableTaxonomy
from auditfeed.domain.model import EntityReference, EventKind, EventType, ReferenceKind

from .metadata import (
    as_text,
    first_text,
    first_value,
    metadata_layers,
    metadata_map,
    nested_mapping,
)
from .patterns import DescriptionHits, extract_description
from .proficiency import normalize_proficiency

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from auditfeed.domain.model import FieldChange, RawEvent

    from .resolve import EntityResolver

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _Aliases:
    nested: tuple[str, ...]
    ids: tuple[str, ...]
    names: tuple[str, ...]
    change_fields: tuple[str, ...]


ALIASES: Mapping[ReferenceKind, _Aliases] = {
    ReferenceKind.SKILL: _Aliases(
        nested=("skill",),
        ids=("skill_id", "skillId", "skillID", "skill_uuid"),
        names=("skill_name", "skillName", "skill"),
        change_fields=("skill_id", "skillId"),
    ),
    ReferenceKind.ORGANIZATION: _Aliases(
        nested=("customer", "organization", "org"),
        ids=(
            "customer_id",
            "customerId",
            "customerID",
            "organization_id",
            "organizationId",
            "org_id",
            "orgId",
        ),
        names=(
            "customer_name",
            "customerName",
            "organization_name",
            "organizationName",
            "org_name",
            "customer",
            "organization",
        ),
        change_fields=("customer_id", "customerId", "organization_id", "org_id"),
    ),
    ReferenceKind.USER: _Aliases(
        nested=("user", "profile", "member"),
        ids=(
            "profile_id",
            "profileId",
            "member_id",
            "memberId",
            "assignee_id",
            "target_user_id",
            "user_id",
            "userId",
        ),
        names=(
            "profile_name",
            "member_name",
            "assignee_name",
            "full_name",
            "user_name",
            "userName",
        ),
        change_fields=("user_id", "profile_id", "member_id"),
    ),
}

PROFICIENCY_KEYS = ("proficiency", "proficiency_level", "proficiencyLevel", "level", "skill_level")
NOTES_KEYS = ("notes", "note", "comment", "comments")
ROLE_KEYS = ("role", "role_name", "roleName")
TYPE_HINT_KEYS = ("type", "event_kind", "eventKind", "kind", "action")
ACTOR_NAME_KEYS = ("actor_name", "actorName", "user_name", "userName")
ACTOR_ID_KEYS = ("actor_id", "user_id", "userId")
OWN_NAME_KEYS = ("name", "title", "full_name", "display_name", "displayName")

_TYPE_HINTS: Mapping[str, EventKind] = {
    "SKILL_APPLIED": EventKind.SKILL_APPLICATION,
    "SKILL_APPLICATION": EventKind.SKILL_APPLICATION,
    "APPLIED_SKILL": EventKind.SKILL_APPLICATION,
    "SKILL_REMOVED": EventKind.SKILL_REMOVAL,
    "SKILL_APPLICATION_REMOVED": EventKind.SKILL_REMOVAL,
    "SKILL_ENDED": EventKind.SKILL_REMOVAL,
    "SKILL_REQUIRED": EventKind.REQUIRED_SKILL_SET,
    "REQUIRED_SKILL": EventKind.REQUIRED_SKILL_SET,
    "REQUIRED_SKILL_SET": EventKind.REQUIRED_SKILL_SET,
    "SKILL_REQUIREMENT": EventKind.REQUIRED_SKILL_SET,
    "ASSIGNED": EventKind.RELATIONSHIP_ASSIGNMENT,
    "ASSIGNMENT": EventKind.RELATIONSHIP_ASSIGNMENT,
    "USER_ASSIGNED": EventKind.RELATIONSHIP_ASSIGNMENT,
    "RELATIONSHIP_ASSIGNMENT": EventKind.RELATIONSHIP_ASSIGNMENT,
}

_WORD = re.compile(r"[a-z]+")
_REMOVAL_WORDS = frozenset({"removed", "ended", "unassigned", "revoked"})


@dataclass(frozen=True, slots=True, kw_only=True)
class Classification:
    kind: EventKind
    actor: EntityReference
    primary_target: EntityReference | None = None
    secondary_target: EntityReference | None = None
    proficiency: str | None = None
    notes: str | None = None
    role: str | None = None


@dataclass(frozen=True, slots=True)
class ReferenceHint:
    """An ``(id, name)`` pair recovered for one entity kind, either half optional."""

    id: str | None = None
    name: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.id is None and self.name is None

    def merge(self, other: ReferenceHint) -> ReferenceHint:
        """Fill gaps from a lower-priority hint without overriding anything."""

        return ReferenceHint(id=self.id or other.id, name=self.name or other.name)


type HintExtractor = Callable[[_RowContext, ReferenceKind], ReferenceHint]


@dataclass(slots=True)
class _RowContext:
    raw: RawEvent
    kind: EventKind
    layers: tuple[Mapping[str, object], ...]
    hits: DescriptionHits
    tables: TableTaxonomy
    slots: Mapping[str, ReferenceKind] = field(default_factory=dict)


def hint_from_nested(context: _RowContext, kind: ReferenceKind) -> ReferenceHint:
    for layer in context.layers:
        for key in ALIASES[kind].nested:
            inner = nested_mapping(layer, key)
            if inner is None:
                continue
            hint = ReferenceHint(
                id=first_text(inner, ("id", "uuid", f"{key}_id")),
                name=first_text(inner, ("name", "title", "full_name", f"{key}_name")),
            )
            if not hint.is_empty:
                return hint
    return ReferenceHint()


def hint_from_flat_aliases(context: _RowContext, kind: ReferenceKind) -> ReferenceHint:
    aliases = ALIASES[kind]
    for layer in context.layers:
        hint = ReferenceHint(
            id=first_text(layer, aliases.ids),
            name=first_text(layer, aliases.names),
        )
        if not hint.is_empty:
            return hint
    return ReferenceHint()


def hint_from_changes(context: _RowContext, kind: ReferenceKind) -> ReferenceHint:
    wanted = ALIASES[kind].change_fields
    for change in context.raw.changes:
        if change.field in wanted:
            value = as_text(change.new_value) or as_text(change.old_value)
            if value is not None:
                return ReferenceHint(id=value)
    return ReferenceHint()


def hint_from_entity_type(context: _RowContext, kind: ReferenceKind) -> ReferenceHint:
    if table_kind(context.tables, context.raw.entity_type) is not kind:
        return ReferenceHint()
    name = None
    for layer in context.layers:
        name = first_text(layer, OWN_NAME_KEYS)
        if name:
            break
    if name is None:
        name = _name_from_changes(context.raw.changes) or context.hits.entity
    return ReferenceHint(id=context.raw.entity_id, name=name)


def hint_from_description(context: _RowContext, kind: ReferenceKind) -> ReferenceHint:
    hits = context.hits
    labelled = {
        ReferenceKind.SKILL: hits.skill,
        ReferenceKind.ORGANIZATION: hits.organization,
        ReferenceKind.USER: hits.user,
    }[kind]
    if labelled:
        return ReferenceHint(name=labelled)
    for slot in ("subject", "target"):
        value = getattr(hits, slot)
        if value and context.slots.get(slot) is kind:
            return ReferenceHint(name=value)
    return ReferenceHint()


HINT_CHAIN: tuple[HintExtractor, ...] = (
    hint_from_nested,
    hint_from_flat_aliases,
    hint_from_changes,
    hint_from_entity_type,
    hint_from_description,
)


def table_kind(tables: TableTaxonomy, entity_type: str) -> ReferenceKind | None:
    lowered = entity_type.lower()
    if lowered in tables.person_tables:
        return ReferenceKind.USER
    if lowered in tables.organization_tables:
        return ReferenceKind.ORGANIZATION
    if lowered in tables.skill_tables:
        return ReferenceKind.SKILL
    return None


def reference_layout(
    kind: EventKind, entity_type: str, tables: TableTaxonomy
) -> tuple[ReferenceKind | None, ReferenceKind | None]:
    """Return the entity kinds shown as primary and secondary target."""

    if kind in {
        EventKind.SKILL_APPLICATION,
        EventKind.SKILL_REMOVAL,
        EventKind.REQUIRED_SKILL_SET,
    }:
        return ReferenceKind.SKILL, ReferenceKind.ORGANIZATION
    if kind is EventKind.RELATIONSHIP_ASSIGNMENT:
        if "skill" in entity_type.lower():
            return ReferenceKind.SKILL, ReferenceKind.USER
        return ReferenceKind.USER, ReferenceKind.ORGANIZATION
    own = table_kind(tables, entity_type)
    return own, None


@dataclass(slots=True)
class EventClassifier:
    """Classify one ``RawEvent`` and recover its structured references."""

    resolver: EntityResolver
    tables: TableTaxonomy = field(default_factory=TableTaxonomy)

    def classify(self, raw: RawEvent) -> Classification:
        metadata = metadata_map(raw)
        layers = metadata_layers(metadata)
        hits = extract_description(raw.description)
        kind = self.classify_kind(raw, layers)

        primary_kind, secondary_kind = reference_layout(kind, raw.entity_type, self.tables)
        context = _RowContext(
            raw=raw,
            kind=kind,
            layers=layers,
            hits=hits,
            tables=self.tables,
            slots={
                slot: ref_kind
                for slot, ref_kind in (("subject", primary_kind), ("target", secondary_kind))
                if ref_kind is not None
            },
        )
        if primary_kind is None and kind.is_generic:
            primary_kind, secondary_kind = self._generic_layout(context)

        primary = self._reference(context, primary_kind)
        secondary = self._reference(context, secondary_kind)

        return Classification(
            kind=kind,
            actor=self._actor(raw, layers),
            primary_target=primary,
            secondary_target=secondary,
            proficiency=self._proficiency(raw, layers, hits),
            notes=_first_layer_text(layers, NOTES_KEYS) or _nested_skill_text(layers, NOTES_KEYS),
            role=self._role(kind, layers, hits),
        )

    def classify_kind(
        self, raw: RawEvent, layers: tuple[Mapping[str, object], ...] | None = None
    ) -> EventKind:
        if layers is None:
            layers = metadata_layers(metadata_map(raw))
        kind = (
            self._kind_from_table(raw.entity_type)
            or _kind_from_type_hint(layers)
            or _kind_from_keywords(raw.description)
            or EventKind.generic_for(raw.event_type)
        )
        if kind is EventKind.SKILL_APPLICATION and _is_removal(raw):
            return EventKind.SKILL_REMOVAL
        return kind

    def _kind_from_table(self, entity_type: str) -> EventKind | None:
        lowered = entity_type.lower()
        if lowered in self.tables.application_tables:
            return EventKind.SKILL_APPLICATION
        if lowered in self.tables.assignment_tables:
            return EventKind.RELATIONSHIP_ASSIGNMENT
        if lowered in self.tables.requirement_tables:
            return EventKind.REQUIRED_SKILL_SET
        return None

    def _generic_layout(
        self, context: _RowContext
    ) -> tuple[ReferenceKind | None, ReferenceKind | None]:
        found = [
            ref_kind
            for ref_kind in (ReferenceKind.SKILL, ReferenceKind.ORGANIZATION, ReferenceKind.USER)
            if not _hint_for(context, ref_kind).is_empty
        ]
        found.extend((None, None))
        return found[0], found[1]

    def _reference(
        self, context: _RowContext, ref_kind: ReferenceKind | None
    ) -> EntityReference | None:
        if ref_kind is None:
            return None
        hint = _hint_for(context, ref_kind)
        if hint.is_empty:
            return None
        return self.resolver.resolve_hint(ref_kind, id=hint.id, name=hint.name)

    def _actor(self, raw: RawEvent, layers: tuple[Mapping[str, object], ...]) -> EntityReference:
        actor = self.resolver.resolve(ReferenceKind.USER, raw.user_id)
        if not actor.is_unknown:
            return actor
        for layer in layers:
            owner = first_text(layer, ACTOR_ID_KEYS)
            if owner is not None and owner != raw.user_id:
                continue
            name = first_text(layer, ACTOR_NAME_KEYS)
            if name is not None:
                return EntityReference(kind=ReferenceKind.USER, name=name)
        log.debug("Actor %r of raw event %s is unresolved", raw.user_id, raw.id)
        return actor

    @staticmethod
    def _proficiency(
        raw: RawEvent, layers: tuple[Mapping[str, object], ...], hits: DescriptionHits
    ) -> str | None:
        value = _first_layer_value(layers, PROFICIENCY_KEYS)
        if value is None:
            value = _nested_skill_value(layers, PROFICIENCY_KEYS)
        if value is None:
            for change in raw.changes:
                if change.field in PROFICIENCY_KEYS:
                    value = change.new_value if change.new_value is not None else change.old_value
                    break
        if value is None:
            value = hits.proficiency
        return normalize_proficiency(value)

    @staticmethod
    def _role(
        kind: EventKind, layers: tuple[Mapping[str, object], ...], hits: DescriptionHits
    ) -> str | None:
        role = _first_layer_text(layers, ROLE_KEYS)
        if role is None and kind is EventKind.RELATIONSHIP_ASSIGNMENT:
            role = hits.role
        return role


def _hint_for(context: _RowContext, ref_kind: ReferenceKind) -> ReferenceHint:
    hint = ReferenceHint()
    for extractor in HINT_CHAIN:
        hint = hint.merge(extractor(context, ref_kind))
        if hint.id is not None and hint.name is not None:
            break
    return hint


def _kind_from_type_hint(layers: tuple[Mapping[str, object], ...]) -> EventKind | None:
    label = _first_layer_text(layers, TYPE_HINT_KEYS)
    if label is None:
        return None
    normalized = re.sub(r"[\s-]+", "_", label.strip()).upper()
    return _TYPE_HINTS.get(normalized)


def _kind_from_keywords(description: str | None) -> EventKind | None:
    if not description:
        return None
    words = set(_WORD.findall(description.lower()))
    if "applied" in words and "at" in words:
        return EventKind.SKILL_APPLICATION
    if "required" in words or "requirement" in words:
        return EventKind.REQUIRED_SKILL_SET
    if "assigned" in words and "to" in words:
        return EventKind.RELATIONSHIP_ASSIGNMENT
    return None


def _is_removal(raw: RawEvent) -> bool:
    if raw.event_type is EventType.DELETE:
        return True
    if raw.event_type is EventType.UPDATE and raw.description:
        return not _REMOVAL_WORDS.isdisjoint(_WORD.findall(raw.description.lower()))
    return False


def _first_layer_value(
    layers: tuple[Mapping[str, object], ...], keys: tuple[str, ...]
) -> object | None:
    for layer in layers:
        value = first_value(layer, keys)
        if value is not None and not isinstance(value, dict):
            return value
    return None


def _first_layer_text(
    layers: tuple[Mapping[str, object], ...], keys: tuple[str, ...]
) -> str | None:
    for layer in layers:
        text = first_text(layer, keys)
        if text is not None:
            return text
    return None


def _nested_skill_value(
    layers: tuple[Mapping[str, object], ...], keys: tuple[str, ...]
) -> object | None:
    for layer in layers:
        skill = nested_mapping(layer, "skill")
        if skill is not None:
            value = first_value(skill, keys)
            if value is not None:
                return value
    return None


def _nested_skill_text(
    layers: tuple[Mapping[str, object], ...], keys: tuple[str, ...]
) -> str | None:
    return as_text(_nested_skill_value(layers, keys))


def _name_from_changes(changes: tuple[FieldChange, ...]) -> str | None:
    for change in changes:
        if change.field in OWN_NAME_KEYS:
            return as_text(change.new_value) or as_text(change.old_value)
    return None
