"""Shared async HTTP client for the backend adapters.

Every request passes through a retry transport and an optional client-side rate
limit. Read-mostly endpoints such as the product catalog can additionally be
served from a response cache.
"""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as HishelCacheResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import Retry, RetryTransport

from entitlekit.config.storage import get_http_cache_path

if TYPE_CHECKING:
    from types import TracebackType

    from entitlekit.config.http_resilience import (
        CacheConfig,
        ResilienceConfig,
        RetryPolicy,
        ShouldCacheHook,
    )

log = getLogger(__name__)

type QueryParams = httpx.QueryParams | dict[str, str]


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.total,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        respect_retry_after_header=policy.respect_retry_after_header,
        allowed_methods=tuple(policy.allowed_methods),
        status_forcelist=tuple(policy.status_forcelist),
        retry_on_exceptions=policy.retry_on_exceptions,
        backoff_jitter=policy.backoff_jitter,
    )


class ResilientClient:
    """Rate-limited, retrying JSON client bound to one backend base URL."""

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._limiter: AsyncLimiter | None = None
        if config.ratelimit is not None:
            self._limiter = AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
        self._client = _build_http_client(config)

    @property
    def name(self) -> str:
        return self.config.name

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: QueryParams | None = None,
        json: object = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send one request; ``timeout`` overrides the configured timeout for long polls."""

        options: dict[str, Any] = {}
        if params is not None:
            options["params"] = params
        if json is not None:
            options["json"] = json
        if timeout is not None:
            options["timeout"] = timeout

        if self._limiter is None:
            response = await self._client.request(method, url, **options)
        else:
            async with self._limiter:
                response = await self._client.request(method, url, **options)
        log.debug("[%s] %s %s -> %s", self.name, method, url, response.status_code)
        return response

    async def get(
        self, url: str, *, params: QueryParams | None = None, timeout: float | None = None
    ) -> httpx.Response:
        return await self.request("GET", url, params=params, timeout=timeout)

    async def post(self, url: str, *, json: object = None) -> httpx.Response:
        return await self.request("POST", url, json=json)


def _build_http_client(config: ResilienceConfig) -> httpx.AsyncClient:
    options: dict[str, Any] = {
        "timeout": config.timeout_seconds,
        "transport": RetryTransport(retry=build_retry(config.retry)),
    }
    if config.base_url is not None:
        options["base_url"] = config.base_url
    if config.default_headers:
        options["headers"] = dict(config.default_headers)

    cache = config.cache
    storage, policy = _build_cache_components(cache)
    if storage is None or cache is None:
        return httpx.AsyncClient(**options)
    log.debug("[%s] caching responses in %s storage", config.name, cache.backend)
    return AsyncCacheClient(**options, storage=storage, policy=policy)


class _JsonPayloadFilter(BaseFilter[HishelCacheResponse]):
    """Lets a JSON predicate veto caching; undecodable bodies are cached as usual."""

    def __init__(self, predicate: ShouldCacheHook) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: HishelCacheResponse, body: bytes | None) -> bool:  # noqa: ARG002
        if not body:
            return True
        try:
            payload = json.loads(body)
        except ValueError:
            return True
        return bool(self._predicate(payload))


def _build_cache_components(
    config: CacheConfig | None,
) -> tuple[AsyncSqliteStorage | None, FilterPolicy | None]:
    if config is None or not config.enabled:
        return None, None

    match config.backend:
        case "sqlite":
            database_path = config.sqlite_path or str(get_http_cache_path())
        case "memory":
            database_path = ":memory:"
        case _:
            raise ValueError(f"Unsupported cache backend: {config.backend}")

    storage = AsyncSqliteStorage(
        database_path=database_path,
        default_ttl=config.default_ttl_seconds,
        refresh_ttl_on_access=config.refresh_ttl_on_access,
    )
    policy = None
    if config.should_cache is not None:
        policy = FilterPolicy(response_filters=[_JsonPayloadFilter(config.should_cache)])
    return storage, policy
