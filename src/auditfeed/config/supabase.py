"""Supabase (PostgREST) configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .errors import ConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig
from .storage import get_http_cache_path

SUPABASE_TIMEOUT_SECONDS = 10.0
SUPABASE_REST_PATH = "/rest/v1/"
REFERENCE_CACHE_TTL_SECONDS = 60.0


@dataclass(frozen=True)
class SupabaseConfig:
    """Holds the project URL, API key, and HTTP behaviour for the Supabase adapter."""

    url: str
    api_key: str
    change_log_resilience: ResilienceConfig
    reference_resilience: ResilienceConfig

    @property
    def rest_url(self) -> str:
        return self.url.rstrip("/") + SUPABASE_REST_PATH


def _resilience(name: str, base_url: str, *, cache: CacheConfig | None) -> ResilienceConfig:
    return ResilienceConfig(
        name=name,
        base_url=base_url,
        timeout_seconds=SUPABASE_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        cache=cache,
    )


def _reference_cache() -> CacheConfig | None:
    """Reference-table cache selected by ``AUDITFEED_HTTP_CACHE`` (memory, sqlite or off)."""

    backend = (optional_env_var("AUDITFEED_HTTP_CACHE") or "memory").lower()
    if backend == "off":
        return None
    if backend == "memory":
        return CacheConfig(backend="memory", default_ttl_seconds=REFERENCE_CACHE_TTL_SECONDS)
    if backend == "sqlite":
        return CacheConfig(
            backend="sqlite",
            sqlite_path=str(get_http_cache_path()),
            default_ttl_seconds=REFERENCE_CACHE_TTL_SECONDS,
        )
    raise ConfigurationError(
        f"AUDITFEED_HTTP_CACHE must be memory, sqlite or off, got {backend!r}"
    )


def get_supabase_config(
    *,
    change_log_resilience: ResilienceConfig | None = None,
    reference_resilience: ResilienceConfig | None = None,
) -> SupabaseConfig:
    values = require_env_vars(("SUPABASE_URL", "SUPABASE_API_KEY"))
    url = values["SUPABASE_URL"]
    rest_url = url.rstrip("/") + SUPABASE_REST_PATH
    return SupabaseConfig(
        url=url,
        api_key=values["SUPABASE_API_KEY"],
        # Every change notification must observe the latest rows, so no cache here.
        change_log_resilience=change_log_resilience
        or _resilience("supabase-change-log", rest_url, cache=None),
        reference_resilience=reference_resilience
        or _resilience("supabase-reference", rest_url, cache=_reference_cache()),
    )
