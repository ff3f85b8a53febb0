"""Tolerant readers over the untyped ``RawEvent.metadata`` payload."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, cast

if TYPE_CHECKING:
    from collections.abc import Iterable

    from auditfeed.domain.model import RawEvent

log = logging.getLogger(__name__)

# Some producers wrap the real payload one level deeper.
_WRAPPER_KEYS = ("metadata", "details", "data")


def metadata_map(event: RawEvent) -> dict[str, object]:
    """Return the event metadata as a plain dict.

    JSON strings are decoded. Anything that is not (or does not decode to) a
    mapping becomes an empty dict so callers can fall back to the description.
    """

    raw = event.metadata
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return {str(key): value for key, value in cast(Mapping[object, object], raw).items()}
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            decoded = json.loads(raw)
        except (ValueError, UnicodeDecodeError):
            log.debug("Ignoring malformed metadata on raw event %s", event.id)
            return {}
        if isinstance(decoded, Mapping):
            return {
                str(key): value
                for key, value in cast(Mapping[object, object], decoded).items()
            }
    log.debug("Ignoring non-mapping metadata on raw event %s", event.id)
    return {}


def metadata_layers(metadata: Mapping[str, object]) -> tuple[Mapping[str, object], ...]:
    """Return the top-level map followed by any wrapped inner maps."""

    layers: list[Mapping[str, object]] = [metadata]
    for key in _WRAPPER_KEYS:
        inner = nested_mapping(metadata, key)
        if inner is not None:
            layers.append(inner)
    return tuple(layers)


def nested_mapping(metadata: Mapping[str, object], key: str) -> Mapping[str, object] | None:
    value = metadata.get(key)
    if isinstance(value, Mapping):
        return cast(Mapping[str, object], value)
    return None


def first_value(metadata: Mapping[str, object], aliases: Iterable[str]) -> object | None:
    """Return the first non-blank value stored under any of ``aliases``."""

    for alias in aliases:
        value = metadata.get(alias)
        if is_present(value):
            return value
    return None


def first_text(metadata: Mapping[str, object], aliases: Iterable[str]) -> str | None:
    value = first_value(metadata, aliases)
    return as_text(value)


def as_text(value: object) -> str | None:
    """Render scalar ids and names as stripped text; reject containers and bools."""

    if value is None or isinstance(value, (bool, Mapping, list, tuple, set)):
        return None
    text = str(value).strip()
    return text or None


def is_present(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True
