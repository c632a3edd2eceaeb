"""
Collection catalogue: per resource kind, the record model, its query parameters and
how the query engine filters, searches and sorts it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Type

from pydantic import BaseModel

from schemas.content import Page, Post
from schemas.course import Course
from schemas.query import CoursesQueryParams, PostsQueryParams, QueryParameters, UniversitiesQueryParams
from schemas.university import University
from services.exceptions import UnknownResourceKind
from services.query_engine import QueryConfig, field_getter, parse_leading_int, parse_numeric


@dataclass(frozen=True)
class CollectionSpec:
    kind: str
    model: Type[BaseModel]
    params_model: Type[QueryParameters]
    query_config: QueryConfig


def _post_category_ids(post: Post):
    return [category.id for category in post.categories]


COURSES = CollectionSpec(
    kind="courses",
    model=Course,
    params_model=CoursesQueryParams,
    query_config=QueryConfig(
        default_limit=12,
        filter_fields={
            "category": field_getter("category"),
            "level": field_getter("level"),
        },
        search_fields=(
            field_getter("title"),
            field_getter("description"),
            field_getter("instructor"),
            field_getter("category"),
        ),
        sort_keys={
            "title": field_getter("title"),
            "price": lambda c: parse_numeric(c.price),
            "rating": field_getter("rating"),
            "studentsEnrolled": field_getter("students_enrolled"),
            "duration": lambda c: parse_leading_int(c.duration),
        },
        range_field=field_getter("price"),
    ),
)

UNIVERSITIES = CollectionSpec(
    kind="universities",
    model=University,
    params_model=UniversitiesQueryParams,
    query_config=QueryConfig(
        default_limit=6,
        filter_fields={
            "country": field_getter("country"),
            "university_type": field_getter("university_type"),
            "status": field_getter("status"),
            "featured": field_getter("featured"),
        },
        search_fields=(
            field_getter("name"),
            field_getter("location"),
            field_getter("description"),
        ),
        sort_keys={
            "name": field_getter("name"),
            "founded": field_getter("founded"),
            "students": field_getter("students"),
            "ranking": field_getter("ranking"),
        },
    ),
)

POSTS = CollectionSpec(
    kind="posts",
    model=Post,
    params_model=PostsQueryParams,
    query_config=QueryConfig(
        default_limit=9,
        filter_fields={"category": _post_category_ids},
        search_fields=(
            field_getter("title"),
            lambda p: p.meta.description,
        ),
        sort_keys={
            "title": field_getter("title"),
            "publishedAt": field_getter("published_at"),
        },
    ),
)

PAGES = CollectionSpec(
    kind="pages",
    model=Page,
    params_model=QueryParameters,
    query_config=QueryConfig(
        default_limit=12,
        search_fields=(field_getter("title"),),
        sort_keys={"title": field_getter("title")},
    ),
)

COLLECTIONS: Dict[str, CollectionSpec] = {spec.kind: spec for spec in (COURSES, UNIVERSITIES, POSTS, PAGES)}


def get_collection(kind: str) -> CollectionSpec:
    try:
        return COLLECTIONS[kind]
    except KeyError:
        raise UnknownResourceKind(kind) from None
