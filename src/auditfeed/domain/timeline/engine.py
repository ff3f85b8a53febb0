"""Orchestrator for the timeline subsystem.

The pipeline composes the stages but owns no state between runs: the same raw
window and the same ``now`` always produce equal output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from auditfeed.config.feed import FeedSettings
from auditfeed.domain.time_windows import utcnow

from .classify import EventClassifier
from .format import Formatter
from .group import ClassifiedEvent, Grouper
from .noise import NoiseFilter
from .resolve import EntityResolver

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from auditfeed.domain.model import ConsolidatedEvent, DisplayEvent, RawEvent
    from auditfeed.domain.time_windows import Clock

    from .resolve import ReferenceCache


@dataclass(slots=True)
class TimelinePipeline:
    """Run noise filtering, classification, grouping and formatting."""

    noise_filter: NoiseFilter
    classifier: EventClassifier
    grouper: Grouper
    formatter: Formatter

    def consolidate(self, raw: Iterable[RawEvent]) -> list[ConsolidatedEvent]:
        """Return consolidated events for ``raw``, newest first."""

        kept = self.noise_filter(raw)
        classified = [ClassifiedEvent(event, self.classifier.classify(event)) for event in kept]
        return self.grouper(classified)

    def run(
        self, raw: Iterable[RawEvent], *, now: datetime | None = None
    ) -> tuple[DisplayEvent, ...]:
        consolidated = self.consolidate(raw)
        reference_time = now if now is not None else self.formatter.clock()
        return tuple(self.formatter.format(event, now=reference_time) for event in consolidated)


def build_pipeline(
    cache: ReferenceCache,
    settings: FeedSettings | None = None,
    *,
    clock: Clock = utcnow,
) -> TimelinePipeline:
    """Wire the default stages around one shared reference cache."""

    settings = settings or FeedSettings()
    resolver = EntityResolver(cache, min_partial_length=settings.min_partial_id_length)
    return TimelinePipeline(
        noise_filter=NoiseFilter(settings),
        classifier=EventClassifier(resolver, settings.tables),
        grouper=Grouper(settings),
        formatter=Formatter(resolver, settings, clock),
    )
