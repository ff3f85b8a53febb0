"""Audit-log row parsing shared by the HTTP and SQL adapters."""

from __future__ import annotations

from .schema import AuditLogRow, FieldChangePayload, NamedRow, ProfileRow
from .translator import (
    UnsupportedEventTypeError,
    parse_named_record,
    parse_profile_record,
    parse_raw_event,
    parse_raw_events,
)

__all__ = [
    "AuditLogRow",
    "FieldChangePayload",
    "NamedRow",
    "ProfileRow",
    "UnsupportedEventTypeError",
    "parse_named_record",
    "parse_profile_record",
    "parse_raw_event",
    "parse_raw_events",
]
