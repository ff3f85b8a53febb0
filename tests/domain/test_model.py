from __future__ import annotations

from auditfeed.domain.model import EventType
from auditfeed.domain.timeline import NoiseFilter, select_window

from tests.support.events import make_raw_event


def test_raw_events_are_identified_by_change_log_id() -> None:
    row = make_raw_event(id=7, entity_type="customers", entity_id="1")
    refetched = make_raw_event(
        id=7,
        event_type=EventType.UPDATE,
        entity_type="Customers",
        entity_id="1",
        description="Updated customers 1",
    )
    other = make_raw_event(id=8, entity_type="customers", entity_id="1")

    assert row == refetched
    assert hash(row) == hash(refetched)
    assert row != other
    assert len({row, refetched, other}) == 2


def test_pipeline_stages_agree_on_row_identity() -> None:
    row = make_raw_event(id=7, entity_type="customers", entity_id="1")
    refetched = make_raw_event(id=7, entity_type="Customers", entity_id="1")

    window = select_window([row, refetched], None)

    assert window == [row]
    assert NoiseFilter()(window) == [row]
