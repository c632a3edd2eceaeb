"""
Course catalogue service: listing, detail, categories, featured and related courses.
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional

from schemas.course import ALL_COURSES_CATEGORY, Course, CourseCategory
from schemas.query import CoursesQueryParams, QueryResult
from services.query_cache import CacheOptions
from services.query_engine import count_by, field_getter, sort_records
from services.collections import COURSES
from services.resource_service import CachedResourceService

logger = logging.getLogger("course_service")

CATEGORY_OPTIONS = CacheOptions(stale_time=15 * 60, gc_time=60 * 60)
FEATURED_OPTIONS = CacheOptions(stale_time=10 * 60, gc_time=30 * 60)
RELATED_OPTIONS = CacheOptions(stale_time=10 * 60, gc_time=30 * 60)


def category_id(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


class CourseService(CachedResourceService):
    kind = "courses"

    async def list_courses(self, params: Optional[CoursesQueryParams] = None) -> QueryResult:
        return await self.list(params or CoursesQueryParams())

    async def get_course(self, slug: str) -> Optional[Course]:
        return await self.detail(slug)

    async def get_categories(self) -> List[CourseCategory]:
        return await self._cached(self.keys.categories(), self._load_categories, CATEGORY_OPTIONS)

    async def get_featured(self, limit: int = 3) -> List[Course]:
        return await self._cached(self.keys.featured(limit), lambda: self._load_featured(limit), FEATURED_OPTIONS)

    async def get_related(self, course_id: int, limit: int = 3) -> List[Course]:
        return await self._cached(
            self.keys.related(course_id, limit),
            lambda: self._load_related(course_id, limit),
            RELATED_OPTIONS,
        )

    def invalidate_categories(self) -> int:
        return self.cache.invalidate(self.keys.categories())

    async def _load_categories(self) -> List[CourseCategory]:
        courses = await self.source.fetch_all(self.kind)
        categories = [CourseCategory(id="all", name=ALL_COURSES_CATEGORY, count=len(courses))]
        for name, count in count_by(courses, field_getter("category")).items():
            categories.append(CourseCategory(id=category_id(name), name=name, count=count))
        return categories

    async def _load_featured(self, limit: int) -> List[Course]:
        # Top-rated courses; equal ratings keep catalogue order
        courses = await self.source.fetch_all(self.kind)
        return sort_records(courses, "rating", "desc", COURSES.query_config)[:limit]

    async def _load_related(self, course_id: int, limit: int) -> List[Course]:
        courses = await self.source.fetch_all(self.kind)
        current = next((c for c in courses if c.id == course_id), None)
        if current is None:
            return []

        related = [c for c in courses if c.id != course_id and c.category == current.category][:limit]
        if len(related) < limit:
            # Not enough in the same category: fill with other courses in catalogue order
            related_ids = {c.id for c in related}
            related.extend(
                [c for c in courses if c.id != course_id and c.id not in related_ids][:limit - len(related)]
            )
        return related
