from __future__ import annotations

import pytest

from auditfeed.domain.timeline import normalize_proficiency


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (1, "Novice"),
        ("2", "Intermediate"),
        (3.0, "Advanced"),
        (4, "Expert"),
        (5, "Expert"),
        ("e", "Expert"),
        ("B", "Novice"),
        ("EXPERT", "Expert"),
        ("beginner", "Novice"),
        ("senior", "Advanced"),
        ("Advanced level", "Advanced"),
        ("expert proficiency", "Expert"),
        ("rock_star", "Rock Star"),
        ("", None),
        ("   ", None),
        (None, None),
        (True, None),
        (9, "9"),
        (7.0, "7"),
        (2.5, "2.5"),
        (0, "0"),
    ],
)
def test_normalize_proficiency(value: object, expected: str | None) -> None:
    assert normalize_proficiency(value) == expected


def test_unknown_numbers_pass_through_as_text() -> None:
    assert normalize_proficiency("7") == normalize_proficiency(7) == "7"
