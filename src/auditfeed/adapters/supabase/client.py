"""PostgREST client for a Supabase project's audit and reference tables."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from auditfeed.adapters.audit_log import parse_named_record, parse_profile_record, parse_raw_events
from auditfeed.adapters.http_resilience import ResilientClient
from auditfeed.config.supabase import SupabaseConfig, get_supabase_config
from auditfeed.domain.model import ReferenceKind
from auditfeed.domain.ports.fetching import ChangeLogBatch, SourceError
from auditfeed.domain.timeline.classify import ALIASES

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from auditfeed.config.http_resilience import ResilienceConfig
    from auditfeed.domain.ports.fetching import (
        AsyncReferenceSource,
        ChangeLogSource,
        ReferenceCollections,
        ReferenceSource,
    )
    from auditfeed.domain.timeline.resolve import ReferenceRecord
    from auditfeed.domain.timeline.scope import FeedScope

log = getLogger(__name__)

AUDIT_LOG_TABLE = "audit_logs"
AUDIT_LOG_COLUMNS = (
    "id,event_type,entity_type,entity_id,user_id,event_time,description,changes,metadata"
)

REFERENCE_TABLES: dict[ReferenceKind, tuple[str, str]] = {
    ReferenceKind.USER: ("profiles", "id,first_name,last_name,email"),
    ReferenceKind.ORGANIZATION: ("customers", "id,name"),
    ReferenceKind.SKILL: ("skills", "id,name"),
}


class SupabaseAPIError(SourceError):
    """Raised when PostgREST answers with an error status."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _auth_headers(config: SupabaseConfig) -> dict[str, str]:
    return {
        "apikey": config.api_key,
        "Authorization": f"Bearer {config.api_key}",
        "Accept": "application/json",
    }


def _timestamp_param(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def scope_filter(scope: FeedScope) -> str:
    """PostgREST ``or=(...)`` filter matching rows that may concern ``scope``.

    The controller still applies the exact relevance check client-side.
    """

    value = scope.id.replace(",", r"\,")
    clauses = [f"entity_id.eq.{value}"]
    if scope.kind is ReferenceKind.USER:
        clauses.append(f"user_id.eq.{value}")
    aliases = ALIASES[scope.kind]
    clauses.extend(f"metadata->>{alias}.eq.{value}" for alias in aliases.ids)
    clauses.extend(f"metadata->{key}->>id.eq.{value}" for key in aliases.nested)
    return "(" + ",".join(clauses) + ")"


async def _get_json(
    client: ResilientClient,
    table: str,
    *,
    params: httpx.QueryParams,
    headers: dict[str, str],
) -> list[object]:
    try:
        response = await client.get(table, params=params, headers=headers)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        log.error(f"Supabase request for {table} failed with status {status}")
        raise SupabaseAPIError(
            f"Supabase request for {table} failed with status {status}", status=status
        ) from exc
    except httpx.HTTPError as exc:
        raise SourceError(f"Supabase request for {table} failed: {exc}") from exc

    payload = response.json()
    if not isinstance(payload, list):
        raise SupabaseAPIError(f"Unexpected payload for {table}: expected a list of rows")
    return payload


@dataclass(slots=True)
class SupabaseChangeLogSource:
    config: SupabaseConfig = field(default_factory=get_supabase_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def __call__(
        self,
        *,
        scope: FeedScope | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 200,
    ) -> ChangeLogBatch:
        return asyncio.run(self.fetch(scope=scope, since=since, until=until, limit=limit))

    def latest_event_id(self) -> int | None:
        return asyncio.run(self.fetch_latest_event_id())

    async def fetch(
        self,
        *,
        scope: FeedScope | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 200,
    ) -> ChangeLogBatch:
        params: list[tuple[str, str]] = [
            ("select", AUDIT_LOG_COLUMNS),
            ("order", "event_time.desc,id.desc"),
            ("limit", str(limit)),
        ]
        if since is not None:
            params.append(("event_time", f"gte.{_timestamp_param(since)}"))
        if until is not None:
            params.append(("event_time", f"lte.{_timestamp_param(until)}"))
        if scope is not None:
            params.append(("or", scope_filter(scope)))

        async with self.client_factory(self.config.change_log_resilience) as client:
            rows = await _get_json(
                client,
                AUDIT_LOG_TABLE,
                params=httpx.QueryParams(params),
                headers=_auth_headers(self.config),
            )

        events = parse_raw_events(row for row in rows if isinstance(row, dict))
        events.reverse()
        latest = max((event.id for event in events), default=None)
        log.debug("Fetched %d audit-log rows for scope %s", len(events), scope)
        return ChangeLogBatch(events=tuple(events), latest_event_id=latest)

    async def fetch_latest_event_id(self) -> int | None:
        params = httpx.QueryParams({"select": "id", "order": "id.desc", "limit": "1"})
        async with self.client_factory(self.config.change_log_resilience) as client:
            rows = await _get_json(
                client, AUDIT_LOG_TABLE, params=params, headers=_auth_headers(self.config)
            )
        if not rows or not isinstance(rows[0], dict):
            return None
        value = rows[0].get("id")
        return int(value) if isinstance(value, (int, str)) else None


@dataclass(slots=True)
class SupabaseReferenceSource:
    """Bulk-lists profiles, customers and skills as ``{id, name}`` records."""

    config: SupabaseConfig = field(default_factory=get_supabase_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def __call__(self) -> ReferenceCollections:
        return asyncio.run(self.fetch())

    async def fetch(self) -> ReferenceCollections:
        collections: dict[ReferenceKind, list[ReferenceRecord]] = {}
        async with self.client_factory(self.config.reference_resilience) as client:
            for kind, (table, columns) in REFERENCE_TABLES.items():
                rows = await _get_json(
                    client,
                    table,
                    params=httpx.QueryParams({"select": columns}),
                    headers=_auth_headers(self.config),
                )
                parse = parse_profile_record if kind is ReferenceKind.USER else parse_named_record
                try:
                    collections[kind] = [parse(row) for row in rows if isinstance(row, dict)]
                except ValidationError as exc:
                    raise SupabaseAPIError(f"Unreadable {table} rows: {exc}") from exc
        return collections


if TYPE_CHECKING:
    _change_log_check: ChangeLogSource = SupabaseChangeLogSource()
    _reference_check: ReferenceSource = SupabaseReferenceSource()
    _async_reference_check: AsyncReferenceSource = SupabaseReferenceSource().fetch
