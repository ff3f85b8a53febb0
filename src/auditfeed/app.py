"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Literal

from auditfeed.adapters.polling import PollingSubscription
from auditfeed.adapters.sqlalchemy import (
    SqlAlchemyChangeLogSource,
    SqlAlchemyReferenceSource,
    is_started,
    startup,
)
from auditfeed.adapters.supabase import SupabaseChangeLogSource, SupabaseReferenceSource
from auditfeed.config import get_feed_settings, get_supabase_config
from auditfeed.domain.time_windows import utcnow
from auditfeed.domain.timeline import FeedController, FeedRequest, ReferenceCache, build_pipeline

if TYPE_CHECKING:
    from collections.abc import Callable

    from auditfeed.config import FeedSettings
    from auditfeed.domain.ports import ChangeLogSource, ReferenceSource
    from auditfeed.domain.time_windows import Clock, TimeWindow
    from auditfeed.domain.timeline import FeedScope, FeedState

type Backend = Literal["sql", "supabase"]

log = getLogger(__name__)


def _sources(backend: Backend) -> tuple[ChangeLogSource, ReferenceSource]:
    if backend == "supabase":
        config = get_supabase_config()
        return SupabaseChangeLogSource(config=config), SupabaseReferenceSource(config=config)
    if backend == "sql":
        if not is_started():
            startup()
        return SqlAlchemyChangeLogSource(), SqlAlchemyReferenceSource()
    raise ValueError(f"Unsupported backend: {backend}")


def build_feed(
    *,
    backend: Backend = "sql",
    scope: FeedScope | None = None,
    window: TimeWindow | None = None,
    limit: int | None = None,
    settings: FeedSettings | None = None,
    poll_interval_seconds: float | None = None,
    clock: Clock = utcnow,
) -> FeedController:
    """Compose a feed controller over the configured backend."""

    effective_settings = settings or get_feed_settings()
    source, reference_source = _sources(backend)
    cache = ReferenceCache(clock=clock)
    subscription = (
        PollingSubscription(source, interval_seconds=poll_interval_seconds)
        if poll_interval_seconds is not None
        else None
    )
    return FeedController(
        pipeline=build_pipeline(cache, effective_settings, clock=clock),
        source=source,
        request=FeedRequest(scope=scope, limit=limit or effective_settings.window_limit),
        references=cache,
        reference_source=reference_source,
        subscription=subscription,
        window=window,
        settings=effective_settings,
        clock=clock,
    )


def show_feed(
    *,
    backend: Backend = "sql",
    scope: FeedScope | None = None,
    window: TimeWindow | None = None,
    limit: int | None = None,
) -> FeedState:
    """Compute a feed once."""

    controller = build_feed(backend=backend, scope=scope, window=window, limit=limit)
    log.info("Computing feed: backend=%s, scope=%s, limit=%s", backend, scope, limit)
    state = controller.refresh()
    log.info(
        f"Computed feed: events={len(state.events)}, latest={state.latest_event_id}, "
        f"error={state.error}"
    )
    return state


def watch_feed(
    on_update: Callable[[FeedState], None],
    *,
    backend: Backend = "sql",
    scope: FeedScope | None = None,
    window: TimeWindow | None = None,
    limit: int | None = None,
    poll_interval_seconds: float = 5.0,
) -> FeedController:
    """Start a live feed; call ``stop()`` on the returned controller to detach."""

    controller = build_feed(
        backend=backend,
        scope=scope,
        window=window,
        limit=limit,
        poll_interval_seconds=poll_interval_seconds,
    )
    controller.add_listener(on_update)
    controller.start()
    return controller
