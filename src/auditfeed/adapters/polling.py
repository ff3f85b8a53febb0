"""Change subscription that polls the change log's newest row id."""

from __future__ import annotations

import threading
from logging import getLogger
from typing import TYPE_CHECKING

from auditfeed.domain.ports.fetching import SourceError

if TYPE_CHECKING:
    from auditfeed.domain.ports import ChangeCallback, ChangeLogSource, ChangeSubscription, Unsubscribe

log = getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0


class PollingSubscription:
    """Signal subscribers whenever ``latest_event_id()`` changes.

    The payload handed to callbacks is the newly observed id; receivers are
    expected to re-fetch anyway.
    """

    def __init__(
        self,
        source: ChangeLogSource,
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("Poll interval must be positive")
        self.source = source
        self.interval_seconds = interval_seconds
        self._callbacks: list[ChangeCallback] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_seen: int | None = None

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        with self._lock:
            self._callbacks.append(callback)
            if self._thread is None:
                self._start()

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)
                idle = not self._callbacks
            if idle:
                self.close()

        return unsubscribe

    def poll_once(self) -> bool:
        """Check for a change once; return whether subscribers were signalled."""

        try:
            latest = self.source.latest_event_id()
        except SourceError as exc:
            log.warning("Polling the change log failed: %s", exc)
            return False
        if latest == self._last_seen:
            return False
        self._last_seen = latest
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(latest)
            except Exception:
                log.exception("Change subscriber failed for change-log id %s", latest)
        return True

    def close(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval_seconds * 2)
        self._thread = None

    def _start(self) -> None:
        try:
            self._last_seen = self.source.latest_event_id()
        except SourceError as exc:
            log.warning("Could not read the initial change-log position: %s", exc)
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="auditfeed-poller", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.poll_once()


if TYPE_CHECKING:
    from auditfeed.adapters.sqlalchemy import SqlAlchemyChangeLogSource

    _subscription_check: ChangeSubscription = PollingSubscription(SqlAlchemyChangeLogSource())
