from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from auditfeed.domain.model import ReferenceKind
from auditfeed.domain.ports import SourceError
from auditfeed.domain.time_windows import TimeWindow
from auditfeed.domain.timeline import (
    FeedController,
    FeedRequest,
    FeedScope,
    ReferenceCache,
    build_pipeline,
)

from tests.support.events import FakeChangeLogSource, at, make_raw_event
from tests.support.references import ACME_ID, JANE_ID, FakeReferenceSource

if TYPE_CHECKING:
    from auditfeed.domain.ports import ChangeCallback, Unsubscribe
    from auditfeed.domain.time_windows import Clock
    from auditfeed.domain.timeline import FeedState


def _make_clock(reference: datetime) -> Clock:
    def _clock() -> datetime:
        return reference

    return _clock


class FakeSubscription:
    def __init__(self) -> None:
        self.callbacks: list[ChangeCallback] = []

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        self.callbacks.append(callback)

        def unsubscribe() -> None:
            self.callbacks.remove(callback)

        return unsubscribe

    def fire(self, payload: object = None) -> None:
        for callback in list(self.callbacks):
            callback(payload)


def _controller(
    source: FakeChangeLogSource,
    cache: ReferenceCache,
    now: datetime,
    **kwargs: object,
) -> FeedController:
    clock = _make_clock(now)
    return FeedController(
        pipeline=build_pipeline(cache, clock=clock),
        source=source,
        clock=clock,
        **kwargs,  # type: ignore[arg-type]
    )


def test_refresh_publishes_display_events(reference_cache: ReferenceCache, now: datetime) -> None:
    source = FakeChangeLogSource([make_raw_event(id=1, entity_type="customers", entity_id=ACME_ID)])
    controller = _controller(source, reference_cache, now)

    state = controller.refresh()

    assert state.ok
    assert state.ticket == 1
    assert state.latest_event_id == 1
    assert [event.summary for event in state.events] == ["Jane Doe created customer Acme"]
    assert controller.state is state


def test_stale_recompute_never_overwrites_newer_result(
    reference_cache: ReferenceCache, now: datetime
) -> None:
    source = FakeChangeLogSource([make_raw_event(id=1, entity_type="customers", entity_id="a")])
    controller = _controller(source, reference_cache, now)

    def interleave(call_number: int) -> None:
        if call_number == 1:
            source.events.append(
                make_raw_event(id=2, entity_type="customers", entity_id="b", timestamp=at(5))
            )
            controller.refresh()

    source.before_return = interleave

    returned = controller.refresh()

    assert controller.state.ticket == 2
    assert returned is controller.state
    assert {event.source_event_ids for event in controller.state.events} == {(1,), (2,)}


def test_fetch_failure_keeps_last_good_events(
    reference_cache: ReferenceCache, now: datetime
) -> None:
    source = FakeChangeLogSource([make_raw_event(id=1, entity_type="customers")])
    controller = _controller(source, reference_cache, now)
    published: list[FeedState] = []
    controller.add_listener(published.append)
    good = controller.refresh()

    source.error = SourceError("connection reset")
    failed = controller.refresh()

    assert failed.error == "connection reset"
    assert not failed.ok
    assert failed.events == good.events
    assert failed.ticket == 2

    source.error = None
    recovered = controller.refresh()

    assert recovered.ok
    assert [state.ticket for state in published] == [1, 2, 3]


def test_stale_references_are_refreshed_before_recompute(now: datetime) -> None:
    cache = ReferenceCache(clock=_make_clock(now))
    references = FakeReferenceSource()
    source = FakeChangeLogSource([make_raw_event(id=1, entity_type="customers", entity_id=ACME_ID)])
    controller = _controller(source, cache, now, references=cache, reference_source=references)

    state = controller.refresh()
    controller.refresh()

    assert references.calls == 1
    assert state.events[0].summary == "Jane Doe created customer Acme"


def test_reference_refresh_failure_is_not_fatal(
    now: datetime, caplog: pytest.LogCaptureFixture
) -> None:
    cache = ReferenceCache(clock=_make_clock(now))
    references = FakeReferenceSource(error=SourceError("timeout"))
    source = FakeChangeLogSource([make_raw_event(id=1, entity_type="customers", entity_id=ACME_ID)])
    controller = _controller(source, cache, now, references=cache, reference_source=references)

    with caplog.at_level(logging.WARNING):
        state = controller.refresh()

    assert state.ok
    assert state.events[0].actor.name == "Unknown User"
    assert "Keeping stale reference data" in caplog.text


def test_subscription_drives_recompute(reference_cache: ReferenceCache, now: datetime) -> None:
    subscription = FakeSubscription()
    source = FakeChangeLogSource()
    controller = _controller(source, reference_cache, now, subscription=subscription)

    controller.start()
    source.events.append(make_raw_event(id=9, entity_type="skills", entity_id="s"))
    subscription.fire({"untrusted": "payload"})

    assert controller.state.ticket == 2
    assert len(controller.state.events) == 1

    controller.stop()
    assert subscription.callbacks == []


def test_scope_and_window_reach_the_source(reference_cache: ReferenceCache, now: datetime) -> None:
    scope = FeedScope(ReferenceKind.USER, JANE_ID)
    source = FakeChangeLogSource(
        [
            make_raw_event(id=1, entity_type="skills", entity_id="x", user_id=JANE_ID),
            make_raw_event(id=2, entity_type="skills", entity_id="y", user_id="someone"),
        ]
    )
    controller = _controller(
        source,
        reference_cache,
        now,
        request=FeedRequest(scope=scope, limit=50),
        window=TimeWindow(lookback=timedelta(hours=1)),
    )

    state = controller.refresh()

    assert source.calls == [
        {
            "scope": scope,
            "since": datetime(2025, 3, 5, 14, 4, tzinfo=UTC),
            "until": now,
            "limit": 50,
        }
    ]
    assert [event.source_event_ids for event in state.events] == [(1,)]
