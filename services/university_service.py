"""
University directory service.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from schemas.query import QueryResult, UniversitiesQueryParams
from schemas.university import University, UniversityStats
from services.collections import UNIVERSITIES
from services.query_cache import CacheOptions
from services.query_engine import sort_records
from services.resource_service import CachedResourceService

logger = logging.getLogger("university_service")

FEATURED_OPTIONS = CacheOptions(stale_time=15 * 60, gc_time=30 * 60)
STATS_OPTIONS = CacheOptions(stale_time=30 * 60, gc_time=60 * 60)


class UniversityService(CachedResourceService):
    kind = "universities"

    async def list_universities(self, params: Optional[UniversitiesQueryParams] = None) -> QueryResult:
        return await self.list(params or UniversitiesQueryParams())

    async def get_university(self, slug: str) -> Optional[University]:
        return await self.detail(slug)

    async def get_featured(self, limit: int = 3) -> List[University]:
        return await self._cached(self.keys.featured(limit), lambda: self._load_featured(limit), FEATURED_OPTIONS)

    async def get_stats(self) -> UniversityStats:
        return await self._cached(self.keys.stats(), self._load_stats, STATS_OPTIONS)

    async def _load_featured(self, limit: int) -> List[University]:
        universities = await self.source.fetch_all(self.kind)
        featured = [u for u in universities if u.featured and u.status == "active"]
        return sort_records(featured, "ranking", "desc", UNIVERSITIES.query_config)[:limit]

    async def _load_stats(self) -> UniversityStats:
        universities = await self.source.fetch_all(self.kind)
        active = [u for u in universities if u.status == "active"]
        countries = {u.country for u in active if u.country}
        stats = UniversityStats(
            total_universities=len(active),
            featured_universities=sum(1 for u in active if u.featured),
            total_countries=len(countries),
        )
        logger.debug(f"Computed university stats: {stats.model_dump()}")
        return stats
