from __future__ import annotations

from auditfeed.domain.model import ReferenceKind
from auditfeed.domain.timeline import FeedScope, select_window
from auditfeed.domain.timeline.scope import is_relevant, referenced_ids

from tests.support.events import change, make_raw_event
from tests.support.references import ACME_ID, BOB_ID, JANE_ID, REACT_ID


def test_rows_about_the_entity_itself_are_relevant() -> None:
    raw = make_raw_event(entity_type="customers", entity_id=ACME_ID, user_id=BOB_ID)

    assert is_relevant(raw, FeedScope(ReferenceKind.ORGANIZATION, ACME_ID))
    assert not is_relevant(raw, FeedScope(ReferenceKind.SKILL, ACME_ID))


def test_user_scope_includes_rows_the_user_performed() -> None:
    raw = make_raw_event(entity_type="skills", entity_id="3", user_id=JANE_ID)

    assert is_relevant(raw, FeedScope(ReferenceKind.USER, JANE_ID.upper()))
    assert not is_relevant(raw, FeedScope(ReferenceKind.ORGANIZATION, JANE_ID))


def test_references_in_metadata_and_changes_count() -> None:
    raw = make_raw_event(
        entity_type="skill_applications",
        entity_id="12",
        user_id=BOB_ID,
        metadata={"data": {"skill": {"id": REACT_ID}}, "customerId": ACME_ID},
        changes=[change("profile_id", None, JANE_ID)],
    )

    assert referenced_ids(raw, ReferenceKind.SKILL) == {REACT_ID}
    assert referenced_ids(raw, ReferenceKind.ORGANIZATION) == {ACME_ID}
    assert referenced_ids(raw, ReferenceKind.USER) == {JANE_ID}


def test_select_window_filters_and_dedupes_in_order() -> None:
    first = make_raw_event(id=1, entity_type="customers", entity_id=ACME_ID)
    unrelated = make_raw_event(id=2, entity_type="customers", entity_id="other", user_id=BOB_ID)
    linked = make_raw_event(
        id=3, entity_type="user_customers", entity_id="9", metadata={"customer_id": ACME_ID}
    )

    scope = FeedScope(ReferenceKind.ORGANIZATION, ACME_ID)
    selected = select_window([first, unrelated, linked, first], scope)

    assert [raw.id for raw in selected] == [1, 3]


def test_select_window_without_scope_only_dedupes() -> None:
    raw = make_raw_event(id=5)

    assert select_window([raw, raw], None) == [raw]
