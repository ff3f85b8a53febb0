from __future__ import annotations

import asyncio
from pathlib import Path  # noqa: TC003

import httpx
import pytest
from hishel.httpx import AsyncCacheClient

from auditfeed.adapters.http_resilience import ResilientClient
from auditfeed.config.http_resilience import CacheConfig, ResilienceConfig


def test_sqlite_cache_backend_builds_caching_client(tmp_path: Path) -> None:
    config = ResilienceConfig(
        name="reference",
        cache=CacheConfig(backend="sqlite", sqlite_path=str(tmp_path / "cache.db")),
    )

    client = ResilientClient(config)
    try:
        assert isinstance(client._client, AsyncCacheClient)  # noqa: SLF001
    finally:
        asyncio.run(client.aclose())


def test_missing_or_disabled_cache_builds_plain_client() -> None:
    for cache in (None, CacheConfig(enabled=False)):
        client = ResilientClient(ResilienceConfig(name="change-log", cache=cache))
        try:
            assert not isinstance(client._client, AsyncCacheClient)  # noqa: SLF001
            assert isinstance(client._client, httpx.AsyncClient)  # noqa: SLF001
        finally:
            asyncio.run(client.aclose())


def test_unknown_cache_backend_is_rejected() -> None:
    config = ResilienceConfig(
        name="reference",
        cache=CacheConfig(backend="redis"),  # type: ignore[arg-type]
    )

    with pytest.raises(ValueError, match="Unsupported cache backend"):
        ResilientClient(config)
