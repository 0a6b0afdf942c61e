from __future__ import annotations

import asyncio

import httpx
import pytest

from entitlekit.adapters.http_resilience import (
    ResilientClient,
    _build_cache_components,  # type: ignore[reportPrivateUsage]
    build_retry,
)
from entitlekit.config import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy


def test_build_retry_follows_policy() -> None:
    retry = build_retry(RetryPolicy(total=2, backoff_factor=0.25))

    assert retry.total == 2
    assert retry.backoff_factor == 0.25


def test_cache_components_are_optional() -> None:
    assert _build_cache_components(None) == (None, None)
    assert _build_cache_components(CacheConfig(enabled=False)) == (None, None)


def test_unknown_cache_backend_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unsupported cache backend"):
        _build_cache_components(CacheConfig(backend="redis"))  # type: ignore[arg-type]


def test_memory_cache_with_predicate_builds_filter_policy() -> None:
    storage, policy = _build_cache_components(CacheConfig(should_cache=lambda _payload: True))

    assert storage is not None
    assert policy is not None


def test_rate_limited_client_sends_requests() -> None:
    seen: list[str] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"ok": True})

    async def scenario() -> list[int]:
        config = ResilienceConfig(
            name="test",
            base_url="https://api.test/",
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        )
        async with ResilientClient(config) as client:
            client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
                transport=httpx.MockTransport(handler), base_url="https://api.test/"
            )
            responses = [await client.get("a"), await client.post("b", json={})]
        return [response.status_code for response in responses]

    assert asyncio.run(scenario()) == [200, 200]
    assert seen == ["/a", "/b"]
