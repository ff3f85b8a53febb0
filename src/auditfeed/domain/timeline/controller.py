"""Re-fetch-and-recompute controller for one activity feed.

Every refresh takes a ticket. Only a result whose ticket is newer than the last
published one becomes visible, so a slow, stale recompute never overwrites a
newer feed. Fetch failures keep the last good events and set ``error``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from auditfeed.config.feed import FeedSettings
from auditfeed.domain.ports.fetching import ReferenceRefreshError, SourceError
from auditfeed.domain.time_windows import apply_time_window, utcnow

from .scope import FeedRequest, select_window

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from auditfeed.domain.model import DisplayEvent
    from auditfeed.domain.ports import ChangeLogSource, ChangeSubscription, ReferenceSource
    from auditfeed.domain.ports.subscription import Unsubscribe
    from auditfeed.domain.time_windows import Clock, TimeWindow

    from .engine import TimelinePipeline
    from .resolve import ReferenceCache

log = logging.getLogger(__name__)

type FeedListener = Callable[[FeedState], None]


@dataclass(frozen=True, slots=True)
class FeedState:
    """The externally visible output of a feed."""

    events: tuple[DisplayEvent, ...] = ()
    error: str | None = None
    ticket: int = 0
    refreshed_at: datetime | None = None
    latest_event_id: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True, eq=False)
class FeedController:
    pipeline: TimelinePipeline
    source: ChangeLogSource
    request: FeedRequest = field(default_factory=FeedRequest)
    references: ReferenceCache | None = None
    reference_source: ReferenceSource | None = None
    subscription: ChangeSubscription | None = None
    window: TimeWindow | None = None
    settings: FeedSettings = field(default_factory=FeedSettings)
    clock: Clock = utcnow

    _state: FeedState = field(default_factory=FeedState, init=False)
    _issued: int = field(default=0, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)
    _listeners: list[FeedListener] = field(default_factory=list, init=False)
    _unsubscribe: Unsubscribe | None = field(default=None, init=False)

    @property
    def state(self) -> FeedState:
        return self._state

    def add_listener(self, listener: FeedListener) -> None:
        self._listeners.append(listener)

    def start(self) -> FeedState:
        """Attach to the change subscription and run the initial load."""

        if self.subscription is not None and self._unsubscribe is None:
            self._unsubscribe = self.subscription.subscribe(self.notify)
        return self.refresh()

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def notify(self, payload: object = None) -> None:
        """Change signal from the store; the payload is not trusted."""

        del payload
        self.refresh()

    def refresh(self) -> FeedState:
        with self._lock:
            self._issued += 1
            ticket = self._issued

        self._refresh_references()
        request = self.request
        if self.window is not None:
            request = apply_time_window(request, self.window, clock=self.clock)
        try:
            batch = self.source(
                scope=request.scope,
                since=request.since,
                until=request.until,
                limit=request.limit,
            )
        except SourceError as exc:
            log.warning("Feed %s refresh failed: %s", request.scope, exc)
            return self._publish_error(ticket, str(exc))

        now = self.clock()
        window = select_window(batch.events, request.scope, self.settings.tables)
        events = self.pipeline.run(window, now=now)
        return self._publish(
            FeedState(
                events=events,
                ticket=ticket,
                refreshed_at=now,
                latest_event_id=batch.latest_event_id,
            )
        )

    def _refresh_references(self) -> None:
        if self.references is None or self.reference_source is None:
            return
        if not self.references.is_stale(self.settings.reference_ttl):
            return
        try:
            self.references.refresh(self.reference_source)
        except ReferenceRefreshError as exc:
            log.warning("Keeping stale reference data: %s", exc)

    def _publish(self, state: FeedState) -> FeedState:
        with self._lock:
            if state.ticket <= self._state.ticket:
                log.debug(
                    "Discarding stale recompute %s (published %s)",
                    state.ticket,
                    self._state.ticket,
                )
                return self._state
            self._state = state
        self._notify_listeners(state)
        return state

    def _publish_error(self, ticket: int, message: str) -> FeedState:
        with self._lock:
            if ticket <= self._state.ticket:
                return self._state
            state = replace(self._state, error=message, ticket=ticket)
            self._state = state
        self._notify_listeners(state)
        return state

    def _notify_listeners(self, state: FeedState) -> None:
        for listener in list(self._listeners):
            listener(state)
