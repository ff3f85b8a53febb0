"""Tunables for the timeline reconciliation engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .env import env_csv, env_float, env_int, optional_env_var
from .errors import ConfigurationError

DEFAULT_HOUSEKEEPING_FIELDS = frozenset({"updated_at", "created_at"})


@dataclass(frozen=True, slots=True)
class TableTaxonomy:
    """Maps upstream table names onto the roles they play in the feed.

    Names are compared lower-cased. The three core sets hold the first-class
    entity tables; the remaining sets hold junction tables.
    """

    person_tables: frozenset[str] = frozenset({"profiles", "users", "people"})
    organization_tables: frozenset[str] = frozenset({"customers", "organizations"})
    skill_tables: frozenset[str] = frozenset({"skills"})
    application_tables: frozenset[str] = frozenset({"skill_applications"})
    assignment_tables: frozenset[str] = frozenset(
        {"user_customers", "customer_users", "customer_profiles", "user_skills", "profile_skills"}
    )
    requirement_tables: frozenset[str] = frozenset({"customer_skills"})

    @property
    def core_tables(self) -> frozenset[str]:
        return self.person_tables | self.organization_tables | self.skill_tables

    def is_core(self, entity_type: str) -> bool:
        return entity_type.lower() in self.core_tables

    def is_person(self, entity_type: str) -> bool:
        return entity_type.lower() in self.person_tables


@dataclass(frozen=True, slots=True)
class FeedSettings:
    correlation_window: timedelta = timedelta(seconds=5)
    housekeeping_fields: frozenset[str] = DEFAULT_HOUSEKEEPING_FIELDS
    tables: TableTaxonomy = field(default_factory=TableTaxonomy)
    # None applies the join-row artifact rule to every non-core table.
    artifact_entity_types: frozenset[str] | None = None
    min_partial_id_length: int = 8
    value_budget: int = 60
    timezone: str = "UTC"
    reference_ttl: timedelta = timedelta(minutes=5)
    window_limit: int = 200

    def __post_init__(self) -> None:
        if self.correlation_window < timedelta(0):
            raise ConfigurationError("Correlation window must be non-negative")
        if self.value_budget < 4:
            raise ConfigurationError("Value budget must leave room for an ellipsis")
        if self.window_limit <= 0:
            raise ConfigurationError("Window limit must be positive")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationError(f"Unknown timezone: {self.timezone}") from exc

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def applies_artifact_rule(self, entity_type: str) -> bool:
        lowered = entity_type.lower()
        if self.tables.is_core(lowered):
            return False
        if self.artifact_entity_types is None:
            return True
        return lowered in self.artifact_entity_types


def get_feed_settings() -> FeedSettings:
    """Build settings from ``AUDITFEED_*`` environment variables."""

    defaults = FeedSettings()
    window_seconds = env_float(
        "AUDITFEED_CORRELATION_WINDOW_SECONDS",
        defaults.correlation_window.total_seconds(),
    )
    return FeedSettings(
        correlation_window=timedelta(seconds=window_seconds),
        artifact_entity_types=env_csv("AUDITFEED_ARTIFACT_ENTITY_TYPES"),
        min_partial_id_length=env_int(
            "AUDITFEED_MIN_PARTIAL_ID_LENGTH", defaults.min_partial_id_length
        ),
        timezone=optional_env_var("AUDITFEED_TIMEZONE") or defaults.timezone,
        reference_ttl=timedelta(
            seconds=env_float(
                "AUDITFEED_REFERENCE_TTL_SECONDS", defaults.reference_ttl.total_seconds()
            )
        ),
        window_limit=env_int("AUDITFEED_WINDOW_LIMIT", defaults.window_limit),
    )
