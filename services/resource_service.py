"""
Shared plumbing for cached resource services.

Each resource service reads through the QueryCache with its own key factory and cache
options, so repeated list/detail reads within the stale window never reach the content
source, and a mutation elsewhere can invalidate a whole subtree of keys.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

from pydantic import BaseModel

from schemas.query import QueryParameters, QueryResult
from services.content_source import ContentSource
from services.query_cache import CacheOptions, QueryCache
from services.query_keys import CacheKey, ResourceKeys

logger = logging.getLogger("resource_service")

# Mirrors the frontend query hooks: lists 5/10 min, details 10/30 min
LIST_OPTIONS = CacheOptions(stale_time=5 * 60, gc_time=10 * 60)
DETAIL_OPTIONS = CacheOptions(stale_time=10 * 60, gc_time=30 * 60)


class CachedResourceService:
    kind: str = ""
    list_options: CacheOptions = LIST_OPTIONS
    detail_options: CacheOptions = DETAIL_OPTIONS

    def __init__(self, source: ContentSource, cache: QueryCache) -> None:
        self.source = source
        self.cache = cache
        self.keys = ResourceKeys(self.kind)

    async def _cached(self, key: CacheKey, fetch: Callable[[], Awaitable[Any]], options: CacheOptions) -> Any:
        return await self.cache.get(key, fetch, options)

    async def list(self, params: QueryParameters) -> QueryResult:
        return await self._cached(
            self.keys.list(params),
            lambda: self.source.fetch_collection(self.kind, params),
            self.list_options,
        )

    async def detail(self, slug: str) -> Optional[BaseModel]:
        return await self._cached(
            self.keys.detail(slug),
            lambda: self.source.fetch_by_slug(self.kind, slug),
            self.detail_options,
        )

    async def iter_pages(self, params: QueryParameters) -> AsyncIterator[QueryResult]:
        """Walk consecutive pages starting at params.page until the last one."""
        current: Optional[QueryParameters] = params
        while current is not None:
            result = await self.list(current)
            yield result
            next_page = result.next_page()
            current = current.with_page(next_page) if next_page is not None else None

    async def infinite_pages(self, params: QueryParameters, max_pages: int) -> List[QueryResult]:
        """Pages 1..max_pages of a list (fewer when it runs out), cached as one entry."""
        async def _load() -> List[QueryResult]:
            pages: List[QueryResult] = []
            async for result in self.iter_pages(params.with_page(1)):
                pages.append(result)
                if len(pages) >= max_pages:
                    break
            return pages

        return await self._cached(self.keys.infinite(params) + (max_pages,), _load, self.list_options)

    def schedule_next_page(self, params: QueryParameters, result: QueryResult) -> Optional[asyncio.Task]:
        """Warm the page after `result` in the background. No-op on the last page."""
        next_page = result.next_page()
        if next_page is None:
            return None
        next_params = params.with_page(next_page)
        return self.cache.schedule_prefetch(
            self.keys.list(next_params),
            lambda: self.source.fetch_collection(self.kind, next_params),
            self.list_options,
        )

    async def prefetch_detail(self, slug: str) -> None:
        await self.cache.prefetch(
            self.keys.detail(slug),
            lambda: self.source.fetch_by_slug(self.kind, slug),
            self.detail_options,
        )

    async def prefetch_list(self, params: QueryParameters) -> None:
        await self.cache.prefetch(
            self.keys.list(params),
            lambda: self.source.fetch_collection(self.kind, params),
            self.list_options,
        )

    def invalidate_all(self) -> int:
        return self.cache.invalidate(self.keys.all())

    def invalidate_lists(self) -> int:
        return self.cache.invalidate(self.keys.lists())

    def invalidate_detail(self, slug: str) -> int:
        return self.cache.invalidate(self.keys.detail(slug))
