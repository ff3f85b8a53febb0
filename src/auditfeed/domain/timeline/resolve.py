"""Entity reference resolution against cached reference data.

Responsibilities of this stage:
- map ``(kind, raw id)`` onto a display name using an immutable snapshot of the
  reference collections supplied by the lookup collaborators
- tolerate malformed ids (case variants, UUIDs without dashes, truncated values)
- never raise: an unmatched id resolves to ``"Unknown <Kind>"`` without an id

The cache is an explicit object with a refresh lifecycle. A refresh builds a
complete snapshot before swapping it in, so readers see either the old or the
new snapshot and never a partially loaded one.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING

from auditfeed.domain.model import EntityReference, ReferenceKind
from auditfeed.domain.ports.fetching import ReferenceRefreshError, SourceError
from auditfeed.domain.time_windows import utcnow

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime, timedelta

    from auditfeed.domain.ports.fetching import AsyncReferenceSource, ReferenceSource
    from auditfeed.domain.time_windows import Clock

log = logging.getLogger(__name__)

DEFAULT_MIN_PARTIAL_LENGTH = 8


class MatchKind(StrEnum):
    """How a raw id was matched against the reference collection."""

    EXACT = "exact"
    CASE_INSENSITIVE = "case-insensitive"
    UNDASHED = "undashed"
    PARTIAL = "partial"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class ReferenceRecord:
    id: str
    name: str


def _fold(value: str) -> str:
    return value.strip().casefold()


def _undash(value: str) -> str:
    return _fold(value).replace("-", "").replace("{", "").replace("}", "")


@dataclass(frozen=True, slots=True)
class _KindIndex:
    records: tuple[ReferenceRecord, ...]
    exact: Mapping[str, ReferenceRecord]
    folded: Mapping[str, ReferenceRecord]
    undashed: Mapping[str, ReferenceRecord]

    @classmethod
    def build(cls, records: Iterable[ReferenceRecord]) -> _KindIndex:
        ordered = tuple(sorted(records, key=lambda record: record.id))
        exact: dict[str, ReferenceRecord] = {}
        folded: dict[str, ReferenceRecord] = {}
        undashed: dict[str, ReferenceRecord] = {}
        for record in ordered:
            exact.setdefault(record.id, record)
            folded.setdefault(_fold(record.id), record)
            undashed.setdefault(_undash(record.id), record)
        return cls(
            records=ordered,
            exact=MappingProxyType(exact),
            folded=MappingProxyType(folded),
            undashed=MappingProxyType(undashed),
        )


_EMPTY_INDEX = _KindIndex.build(())


@dataclass(frozen=True, slots=True)
class ReferenceSnapshot:
    """Immutable view of all reference collections at one point in time."""

    indexes: Mapping[ReferenceKind, _KindIndex] = field(
        default_factory=lambda: MappingProxyType({})
    )
    loaded_at: datetime | None = None

    @classmethod
    def build(
        cls,
        collections: Mapping[ReferenceKind, Iterable[ReferenceRecord]],
        *,
        loaded_at: datetime | None = None,
    ) -> ReferenceSnapshot:
        indexes = {kind: _KindIndex.build(records) for kind, records in collections.items()}
        return cls(indexes=MappingProxyType(indexes), loaded_at=loaded_at)

    def index_for(self, kind: ReferenceKind) -> _KindIndex:
        return self.indexes.get(kind, _EMPTY_INDEX)

    def records(self, kind: ReferenceKind) -> tuple[ReferenceRecord, ...]:
        return self.index_for(kind).records


class ReferenceCache:
    """Holds the current ``ReferenceSnapshot`` and swaps it atomically on refresh."""

    def __init__(
        self,
        snapshot: ReferenceSnapshot | None = None,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._snapshot = snapshot or ReferenceSnapshot()
        self._clock = clock
        self._refresh_lock = threading.Lock()
        self._sequence_lock = threading.Lock()
        self._issued = 0
        self._applied = 0

    @classmethod
    def from_records(
        cls,
        collections: Mapping[ReferenceKind, Iterable[ReferenceRecord]],
        *,
        clock: Clock = utcnow,
    ) -> ReferenceCache:
        return cls(ReferenceSnapshot.build(collections, loaded_at=clock()), clock=clock)

    @property
    def snapshot(self) -> ReferenceSnapshot:
        return self._snapshot

    def is_stale(self, ttl: timedelta) -> bool:
        loaded_at = self._snapshot.loaded_at
        if loaded_at is None:
            return True
        return self._clock() - loaded_at >= ttl

    def refresh(self, source: ReferenceSource) -> ReferenceSnapshot:
        """Load every collection from ``source`` and publish the new snapshot.

        On failure the previous snapshot stays in place and ``ReferenceRefreshError``
        is raised.
        """

        with self._refresh_lock:
            sequence = self._begin()
            try:
                collections = source()
                snapshot = ReferenceSnapshot.build(collections, loaded_at=self._clock())
            except SourceError as exc:
                raise ReferenceRefreshError(f"Reference refresh failed: {exc}") from exc
            return self._swap(sequence, snapshot)

    async def refresh_async(self, source: AsyncReferenceSource) -> ReferenceSnapshot:
        """Async variant of ``refresh``; cancelling it leaves the cache untouched.

        Overlapping refreshes are ordered by start: a refresh that finishes after a
        later-started one has already been published is discarded.
        """

        sequence = self._begin()
        try:
            collections = await source()
            snapshot = ReferenceSnapshot.build(collections, loaded_at=self._clock())
        except SourceError as exc:
            raise ReferenceRefreshError(f"Reference refresh failed: {exc}") from exc
        return self._swap(sequence, snapshot)

    def _begin(self) -> int:
        with self._sequence_lock:
            self._issued += 1
            return self._issued

    def _swap(self, sequence: int, snapshot: ReferenceSnapshot) -> ReferenceSnapshot:
        with self._sequence_lock:
            if sequence < self._applied:
                log.debug(
                    "Discarding reference refresh %s (published %s)", sequence, self._applied
                )
                return self._snapshot
            self._applied = sequence
            self._snapshot = snapshot
        log.debug("Reference cache refreshed: %s", _describe(snapshot))
        return snapshot


def _describe(snapshot: ReferenceSnapshot) -> str:
    return ", ".join(
        f"{kind}={len(index.records)}" for kind, index in sorted(snapshot.indexes.items())
    )


@dataclass(slots=True)
class EntityResolver:
    """Resolve raw ids into ``EntityReference`` values, read-only."""

    cache: ReferenceCache
    min_partial_length: int = DEFAULT_MIN_PARTIAL_LENGTH

    def resolve(self, kind: ReferenceKind, raw_id: object) -> EntityReference:
        record, match = self.lookup(kind, raw_id)
        if record is None:
            return EntityReference.unknown(kind)
        if match is not MatchKind.EXACT:
            log.debug("Resolved %s id %r via %s match to %s", kind, raw_id, match, record.id)
        return EntityReference(kind=kind, id=record.id, name=record.name)

    def lookup(
        self, kind: ReferenceKind, raw_id: object
    ) -> tuple[ReferenceRecord | None, MatchKind]:
        if raw_id is None or isinstance(raw_id, bool):
            return None, MatchKind.FALLBACK
        probe = str(raw_id).strip()
        if not probe:
            return None, MatchKind.FALLBACK

        index = self.cache.snapshot.index_for(kind)
        record = index.exact.get(probe)
        if record is not None:
            return record, MatchKind.EXACT
        record = index.folded.get(_fold(probe))
        if record is not None:
            return record, MatchKind.CASE_INSENSITIVE
        undashed = _undash(probe)
        record = index.undashed.get(undashed)
        if record is not None:
            return record, MatchKind.UNDASHED
        record = self._partial_match(index, undashed)
        if record is not None:
            return record, MatchKind.PARTIAL
        return None, MatchKind.FALLBACK

    def resolve_hint(
        self,
        kind: ReferenceKind,
        *,
        id: object = None,  # noqa: A002
        name: str | None = None,
    ) -> EntityReference | None:
        """Resolve a reference recovered from an event payload.

        A resolvable id wins. Otherwise a recovered name is kept without an id,
        and with neither the reference stays absent.
        """

        if id is not None:
            record, _match = self.lookup(kind, id)
            if record is not None:
                return EntityReference(kind=kind, id=record.id, name=record.name)
        if name and name.strip():
            return EntityReference(kind=kind, name=name)
        if id is not None:
            return EntityReference.unknown(kind)
        return None

    def _partial_match(self, index: _KindIndex, undashed: str) -> ReferenceRecord | None:
        if len(undashed) < self.min_partial_length:
            return None
        candidates = [
            record
            for key, record in index.undashed.items()
            if len(key) >= self.min_partial_length and (undashed in key or key in undashed)
        ]
        if len(candidates) == 1:
            return candidates[0]
        if candidates:
            log.debug("Ambiguous partial id %r matched %d records", undashed, len(candidates))
        return None
