from __future__ import annotations

from auditfeed.domain.timeline.patterns import DescriptionHits, extract_description


def test_first_matching_pattern_wins_per_field() -> None:
    hits = extract_description("Applied React at Acme with EXPERT proficiency")

    assert hits.subject == "React"
    assert hits.target == "Acme"
    assert hits.proficiency == "EXPERT"


def test_quoted_skill_added_to_user() -> None:
    hits = extract_description('added skill "TypeScript" to Jane Doe at advanced level.')

    assert hits.skill == "TypeScript"
    assert hits.user == "Jane Doe"
    assert hits.proficiency == "advanced"


def test_labelled_names_stop_at_connectors() -> None:
    hits = extract_description("Linked customer Acme Corp to skill Kotlin with novice level")

    assert hits.organization == "Acme Corp"
    assert hits.skill == "Kotlin"
    assert hits.proficiency == "novice"


def test_generic_crud_sentence_names_the_entity() -> None:
    assert extract_description("Created customers Initech").entity == "Initech"


def test_curly_quotes_capture_a_subject() -> None:
    assert extract_description("Renamed to “Blue Team”").subject == "Blue Team"


def test_blank_description_yields_no_hits() -> None:
    assert extract_description(None) == DescriptionHits()
    assert extract_description("   ").is_empty
