"""
Cache key schema.

Keys are tuples whose first element is the resource kind; later elements narrow it down,
so invalidating a prefix such as ("courses", "list") reaches every list query for
courses. Query parameter models, and plain dicts of their non-default fields, are folded
into the same canonical JSON string.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Tuple

from schemas.query import QueryParameters

CacheKey = Tuple[Any, ...]


def normalize_key_part(part: Any) -> Any:
    if isinstance(part, QueryParameters):
        return part.cache_key()
    if isinstance(part, list):
        return tuple(normalize_key_part(p) for p in part)
    if isinstance(part, dict):
        # Same canonical form as QueryParameters.cache_key(), so a params dict can name a list entry
        return json.dumps(part, sort_keys=True, separators=(",", ":"), default=str)
    return part


def make_key(*parts: Any) -> CacheKey:
    return tuple(normalize_key_part(p) for p in parts)


def key_has_prefix(key: CacheKey, prefix: CacheKey) -> bool:
    return len(prefix) <= len(key) and key[:len(prefix)] == prefix


@dataclass(frozen=True)
class ResourceKeys:
    """Key factory for one resource kind."""
    kind: str

    def all(self) -> CacheKey:
        return make_key(self.kind)

    def lists(self) -> CacheKey:
        return self.all() + ("list",)

    def list(self, params: QueryParameters) -> CacheKey:
        return self.lists() + make_key(params)

    def infinite(self, params: QueryParameters) -> CacheKey:
        return self.lists() + ("infinite",) + make_key(params.model_copy(update={"page": 1}))

    def details(self) -> CacheKey:
        return self.all() + ("detail",)

    def detail(self, slug: str) -> CacheKey:
        return self.details() + (slug,)

    def categories(self) -> CacheKey:
        return self.all() + ("categories",)

    def featured(self, limit: int) -> CacheKey:
        return self.all() + ("featured", limit)

    def related(self, record_id: Any, limit: int) -> CacheKey:
        return self.all() + ("related", record_id, limit)

    def stats(self) -> CacheKey:
        return self.all() + ("stats",)


course_keys = ResourceKeys("courses")
university_keys = ResourceKeys("universities")
post_keys = ResourceKeys("posts")
page_keys = ResourceKeys("pages")
