"""Ordered description patterns used as the last-resort reference source.

Each pattern captures named groups; the first pattern that matches wins for
every group it captures. ``subject`` and ``target`` are positional slots that
the classifier maps onto entity kinds depending on the event kind.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, fields, replace

_STOP = r"(?=\s+(?:at|to|from|for|with|as|in)\b|\s*[.,;!]|\s*$)"
_END = r"\s*[.!]?\s*$"

DESCRIPTION_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        # Applied React at Acme with EXPERT proficiency
        r"\bapplied\s+(?P<subject>.+?)\s+at\s+(?P<target>.+?)"
        r"(?:\s+with\s+(?P<proficiency>[\w-]+)\s+proficiency)?" + _END,
        # added skill "React" to Jane at advanced level
        r"\badded\s+skill\s+[\"'](?P<skill>[^\"']+)[\"']\s+to\s+(?P<user>.+?)"
        r"(?:\s+at\s+(?P<proficiency>[\w-]+)\s+level)?" + _END,
        # added skill requirement "React"
        r"\badded\s+skill\s+requirement\s+[\"'](?P<skill>[^\"']+)[\"']",
        # set required skill React for Acme
        r"\brequired\s+skill\s+(?P<subject>.+?)(?:\s+(?:for|at|to)\s+(?P<target>.+?))?" + _END,
        # assigned Jane to Acme as Developer
        r"\bassigned\s+(?P<subject>.+?)\s+to\s+(?P<target>.+?)"
        r"(?:\s+as\s+(?P<role>.+?))?" + _END,
        # removed React from Acme
        r"\bremoved\s+(?:skill\s+)?(?P<subject>.+?)\s+from\s+(?P<target>.+?)" + _END,
        # Created customers Acme
        r"^\s*(?:created|updated|deleted)\s+[a-z_]+\s+(?P<entity>.+?)" + _END,
        r"[\"“](?P<subject>[^\"”]+)[\"”]",
        r"\bskill\s+(?P<skill>[^\s\"].*?)" + _STOP,
        r"\b(?:customer|organization|org)\s+(?P<organization>[^\s\"].*?)" + _STOP,
        r"\b(?:user|profile|member)\s+(?P<user>[^\s\"].*?)" + _STOP,
        r"\b(?:with|at)\s+(?P<proficiency>[\w-]+)\s+(?:proficiency|level)\b",
        r"\bas\s+(?:an?\s+)?(?P<role>.+?)" + _END,
    )
)

_QUOTES = "\"'“”‘’"


@dataclass(frozen=True, slots=True)
class DescriptionHits:
    subject: str | None = None
    target: str | None = None
    skill: str | None = None
    organization: str | None = None
    user: str | None = None
    entity: str | None = None
    proficiency: str | None = None
    role: str | None = None

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, item.name) is None for item in fields(self))


_HIT_FIELDS = frozenset(item.name for item in fields(DescriptionHits))


def extract_description(description: str | None) -> DescriptionHits:
    """Run the ordered patterns over ``description``; first match wins per group."""

    hits = DescriptionHits()
    if not description or not description.strip():
        return hits
    for pattern in DESCRIPTION_PATTERNS:
        match = pattern.search(description)
        if match is None:
            continue
        updates: dict[str, str] = {}
        for group, value in match.groupdict().items():
            if group not in _HIT_FIELDS or getattr(hits, group) is not None:
                continue
            cleaned = _clean(value)
            if cleaned is not None:
                updates[group] = cleaned
        if updates:
            hits = replace(hits, **updates)
    return hits


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip().strip(_QUOTES).strip()
    return cleaned or None
