"""Field-change helpers shared by the grouper and the formatter."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from auditfeed.domain.model import FieldChange

if TYPE_CHECKING:
    from collections.abc import Iterable

_CAMEL_ID = re.compile(r"[a-z0-9]Id$")


def is_identifier_field(name: str) -> bool:
    """True for ``id``, ``*_id``, ``* id`` and camel-case ``*Id`` fields."""

    stripped = name.strip()
    if stripped.lower() == "id":
        return True
    if _CAMEL_ID.search(stripped):
        return True
    return re.search(r"[_\s-]id$", stripped.lower()) is not None


def visible_changes(
    changes: Iterable[FieldChange], housekeeping: frozenset[str]
) -> tuple[FieldChange, ...]:
    """Drop housekeeping, identifier and no-op changes, keeping order."""

    return tuple(
        change
        for change in changes
        if change.field not in housekeeping
        and not is_identifier_field(change.field)
        and not change.is_noop
    )


def merge_changes(batches: Iterable[Iterable[FieldChange]]) -> tuple[FieldChange, ...]:
    """Net effect of several change lists given oldest first.

    Per field the earliest old value and the latest new value survive; fields
    keep the order of their first appearance.
    """

    merged: dict[str, FieldChange] = {}
    for batch in batches:
        for change in batch:
            current = merged.get(change.field)
            if current is None:
                merged[change.field] = change
            else:
                merged[change.field] = FieldChange(
                    field=change.field,
                    old_value=current.old_value,
                    new_value=change.new_value,
                )
    return tuple(merged.values())
