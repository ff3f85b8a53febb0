"""Audit-event normalization and timeline reconciliation.

Data flow::

    RawEvent[] -> NoiseFilter -> EventClassifier -> Grouper -> Formatter -> DisplayEvent[]

``TimelinePipeline`` runs the stages; ``FeedController`` re-runs it on every
change notification.
"""

from __future__ import annotations

from .classify import Classification, EventClassifier
from .controller import FeedController, FeedState
from .engine import TimelinePipeline, build_pipeline
from .format import Formatter, format_change, format_value, verb_phrase
from .group import ClassifiedEvent, Grouper
from .noise import NoiseFilter, NoiseFilterResult, NoiseRule
from .proficiency import normalize_proficiency
from .resolve import EntityResolver, MatchKind, ReferenceCache, ReferenceRecord, ReferenceSnapshot
from .scope import FeedRequest, FeedScope, select_window

__all__ = [
    "Classification",
    "ClassifiedEvent",
    "EntityResolver",
    "EventClassifier",
    "FeedController",
    "FeedRequest",
    "FeedScope",
    "FeedState",
    "Formatter",
    "Grouper",
    "MatchKind",
    "NoiseFilter",
    "NoiseFilterResult",
    "NoiseRule",
    "ReferenceCache",
    "ReferenceRecord",
    "ReferenceSnapshot",
    "TimelinePipeline",
    "build_pipeline",
    "format_change",
    "format_value",
    "normalize_proficiency",
    "select_window",
]
