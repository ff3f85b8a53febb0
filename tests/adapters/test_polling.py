from __future__ import annotations

import threading

import pytest

from auditfeed.adapters.polling import PollingSubscription
from auditfeed.domain.ports import SourceError

from tests.support.events import FakeChangeLogSource, make_raw_event


def test_poll_once_signals_only_on_change() -> None:
    source = FakeChangeLogSource([make_raw_event(id=1)])
    subscription = PollingSubscription(source, interval_seconds=60)
    received: list[object] = []
    unsubscribe = subscription.subscribe(received.append)

    try:
        assert subscription.poll_once() is False
        source.events.append(make_raw_event(id=2))
        assert subscription.poll_once() is True
        assert subscription.poll_once() is False
    finally:
        unsubscribe()

    assert received == [2]


class FailingSource(FakeChangeLogSource):
    def latest_event_id(self) -> int | None:
        raise SourceError("offline")


def test_poll_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    subscription = PollingSubscription(FailingSource(), interval_seconds=60)

    assert subscription.poll_once() is False
    assert "Polling the change log failed" in caplog.text


def test_background_thread_delivers_changes() -> None:
    source = FakeChangeLogSource()
    subscription = PollingSubscription(source, interval_seconds=0.01)
    delivered = threading.Event()
    unsubscribe = subscription.subscribe(lambda _payload: delivered.set())

    source.events.append(make_raw_event(id=5))

    try:
        assert delivered.wait(timeout=2)
    finally:
        unsubscribe()


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError, match="positive"):
        PollingSubscription(FakeChangeLogSource(), interval_seconds=0)


def test_failing_subscriber_does_not_stop_delivery(caplog: pytest.LogCaptureFixture) -> None:
    source = FakeChangeLogSource()
    subscription = PollingSubscription(source, interval_seconds=0.01)
    received: list[object] = []
    first = threading.Event()
    second = threading.Event()

    def callback(payload: object) -> None:
        received.append(payload)
        if not first.is_set():
            first.set()
            raise ValueError("boom")
        second.set()

    unsubscribe = subscription.subscribe(callback)
    try:
        source.events.append(make_raw_event(id=1))
        assert first.wait(timeout=2)
        source.events.append(make_raw_event(id=2))
        assert second.wait(timeout=2)
    finally:
        unsubscribe()

    assert received == [1, 2]
    assert "Change subscriber failed" in caplog.text
