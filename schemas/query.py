"""
Query parameter and query result schemas for list endpoints.

Design choices:
- Malformed pagination is normalized instead of rejected: a bad `page` becomes 1 and a
  bad `limit` becomes None, which the query engine replaces with the call-site default.
- Parameter models are frozen and expose `cache_key()`, a canonical string so identical
  queries share one cache entry regardless of field order.
- Resource-specific subclasses name their exact-match filters in `filter_fields`.
"""
from __future__ import annotations

import json
import math
from typing import Any, ClassVar, Dict, Generic, List, Literal, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .course import ALL_COURSES_CATEGORY

T = TypeVar("T")


def coerce_positive_int(value: Any) -> Optional[int]:
    """Return value as a positive int, or None when it is missing, non-integer or not positive."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else None
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit() and int(text) > 0:
            return int(text)
    return None


def blank_to_none(value: Any) -> Any:
    """Strip text values; blank text means the parameter was not given."""
    if isinstance(value, str):
        return value.strip() or None
    return value


class PriceRange(BaseModel):
    min: float = 0
    max: Optional[float] = None  # None means no upper bound

    model_config = ConfigDict(frozen=True)

    def contains(self, value: float) -> bool:
        if value < self.min:
            return False
        return self.max is None or value <= self.max


class QueryParameters(BaseModel):
    page: int = 1
    limit: Optional[int] = None
    search: Optional[str] = None
    sort_by: Optional[str] = Field(default=None, alias="sortBy")
    sort_order: Literal["asc", "desc"] = Field(default="asc", alias="sortOrder")
    price_range: Optional[PriceRange] = Field(default=None, alias="priceRange")
    filters: Dict[str, Any] = Field(default_factory=dict, description="Additional exact-match filters")

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    # Names of typed exact-match filter fields declared by subclasses
    filter_fields: ClassVar[Tuple[str, ...]] = ()

    @field_validator("page", mode="before")
    @classmethod
    def normalize_page(cls, v: Any) -> int:
        return coerce_positive_int(v) or 1

    @field_validator("limit", mode="before")
    @classmethod
    def normalize_limit(cls, v: Any) -> Optional[int]:
        return coerce_positive_int(v)

    @field_validator("sort_order", mode="before")
    @classmethod
    def normalize_sort_order(cls, v: Any) -> str:
        if isinstance(v, str) and v.strip().lower() == "desc":
            return "desc"
        return "asc"

    @field_validator("search", mode="before")
    @classmethod
    def normalize_search(cls, v: Any) -> Optional[str]:
        return blank_to_none(v)

    def active_filters(self) -> Dict[str, Any]:
        """Exact-match filters with a defined value, typed fields first."""
        active: Dict[str, Any] = {}
        for name in self.filter_fields:
            value = getattr(self, name, None)
            if blank_to_none(value) is not None:
                active[name] = value
        for name, value in self.filters.items():
            if blank_to_none(value) is not None:
                active.setdefault(name, value)
        return active

    def cache_key(self) -> str:
        payload = self.model_dump(mode="json", exclude_defaults=True)
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))

    def with_page(self, page: int) -> "QueryParameters":
        return self.model_copy(update={"page": page})


class CoursesQueryParams(QueryParameters):
    category: Optional[str] = None
    level: Optional[str] = None
    sort_by: Optional[Literal["title", "price", "rating", "studentsEnrolled", "duration"]] = Field(
        default=None, alias="sortBy"
    )

    filter_fields: ClassVar[Tuple[str, ...]] = ("category", "level")

    @field_validator("category", "level", mode="before")
    @classmethod
    def normalize_filters(cls, v: Any) -> Optional[str]:
        return blank_to_none(v)

    def active_filters(self) -> Dict[str, Any]:
        active = super().active_filters()
        if active.get("category") == ALL_COURSES_CATEGORY:
            del active["category"]
        return active


class UniversitiesQueryParams(QueryParameters):
    country: Optional[str] = None
    university_type: Optional[str] = Field(default=None, alias="universityType")
    status: Optional[str] = "active"
    featured: Optional[bool] = None
    sort_by: Optional[Literal["name", "founded", "students", "ranking"]] = Field(default="name", alias="sortBy")

    filter_fields: ClassVar[Tuple[str, ...]] = ("country", "university_type", "status", "featured")

    @field_validator("country", "university_type", "status", mode="before")
    @classmethod
    def normalize_filters(cls, v: Any) -> Optional[str]:
        return blank_to_none(v)


class PostsQueryParams(QueryParameters):
    category: Optional[str] = Field(default=None, description="Category id; matches any of a post's categories")
    sort_by: Optional[Literal["title", "publishedAt"]] = Field(default=None, alias="sortBy")

    filter_fields: ClassVar[Tuple[str, ...]] = ("category",)

    @field_validator("category", mode="before")
    @classmethod
    def normalize_filters(cls, v: Any) -> Optional[str]:
        return blank_to_none(v)


class QueryResult(BaseModel, Generic[T]):
    items: List[T] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=1, ge=1)
    total_pages: int = Field(default=0, ge=0)
    has_next_page: bool = False
    has_prev_page: bool = False

    @classmethod
    def build(cls, items: List[T], total: int, page: int, limit: int) -> "QueryResult[T]":
        total_pages = math.ceil(total / limit) if total else 0
        return cls(
            items=items,
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )

    @property
    def is_empty(self) -> bool:
        return not self.items

    def next_page(self) -> Optional[int]:
        """Page number to request next, or None on the last page."""
        return self.page + 1 if self.has_next_page else None
