"""Normalization of proficiency and level values onto one vocabulary."""

from __future__ import annotations

import re

from auditfeed.domain.model import Proficiency

_NUMERIC_LEVELS: dict[int, Proficiency] = {
    1: Proficiency.NOVICE,
    2: Proficiency.INTERMEDIATE,
    3: Proficiency.ADVANCED,
    4: Proficiency.EXPERT,
    5: Proficiency.EXPERT,
}

_LETTER_LEVELS: dict[str, Proficiency] = {
    "b": Proficiency.NOVICE,
    "n": Proficiency.NOVICE,
    "i": Proficiency.INTERMEDIATE,
    "a": Proficiency.ADVANCED,
    "e": Proficiency.EXPERT,
}

_SYNONYMS: dict[str, Proficiency] = {
    "novice": Proficiency.NOVICE,
    "beginner": Proficiency.NOVICE,
    "basic": Proficiency.NOVICE,
    "entry": Proficiency.NOVICE,
    "junior": Proficiency.NOVICE,
    "learning": Proficiency.NOVICE,
    "intermediate": Proficiency.INTERMEDIATE,
    "mid": Proficiency.INTERMEDIATE,
    "medium": Proficiency.INTERMEDIATE,
    "competent": Proficiency.INTERMEDIATE,
    "proficient": Proficiency.INTERMEDIATE,
    "working": Proficiency.INTERMEDIATE,
    "advanced": Proficiency.ADVANCED,
    "senior": Proficiency.ADVANCED,
    "strong": Proficiency.ADVANCED,
    "experienced": Proficiency.ADVANCED,
    "expert": Proficiency.EXPERT,
    "master": Proficiency.EXPERT,
    "guru": Proficiency.EXPERT,
    "specialist": Proficiency.EXPERT,
}

_NOISE_SUFFIX = re.compile(r"\s+(?:level|proficiency)$", re.IGNORECASE)
_SEPARATORS = re.compile(r"[\s_-]+")


def normalize_proficiency(value: object) -> str | None:
    """Map a raw level onto Novice / Intermediate / Advanced / Expert.

    Numbers 1-5, single letters and common synonyms are recognized.
    Anything else is title-cased and passed through; blanks become ``None``.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _from_number(value) or _number_text(value)

    text = _NOISE_SUFFIX.sub("", str(value).strip())
    text = _SEPARATORS.sub(" ", text).strip()
    if not text:
        return None

    lowered = text.casefold()
    if lowered in _LETTER_LEVELS:
        return _LETTER_LEVELS[lowered].value
    if lowered in _SYNONYMS:
        return _SYNONYMS[lowered].value
    try:
        number = float(lowered)
    except ValueError:
        return text.title()
    return _from_number(number) or text.title()


def _from_number(value: float) -> str | None:
    if not float(value).is_integer():
        return None
    level = _NUMERIC_LEVELS.get(int(value))
    return level.value if level is not None else None


def _number_text(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
