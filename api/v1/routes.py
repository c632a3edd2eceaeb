"""
Versioned API v1 routes.

Design choices:
- The router does not hardcode a version prefix; main.py mounts it using settings.api_v1_prefix.
- Responses are wrapped in the generic ApiResponse so clients can tell data, an empty
  result, a missing resource and a retryable failure apart by `status`.
- The query cache, content source and block registry are created at start-up and read
  from app.state through dependencies, so tests can swap them with dependency_overrides.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from core.logging_config import get_request_id, set_request_id
from schemas.api import (
    EMPTY_RESULT_MESSAGE,
    FETCH_FAILED_MESSAGE,
    NOT_FOUND_MESSAGE,
    ApiResponse,
    CacheInvalidateRequest,
    CachePrefetchRequest,
    ErrorDetail,
)
from schemas.content import ComposedDocument, Post
from schemas.course import Course, CourseCategory
from schemas.query import CoursesQueryParams, PostsQueryParams, PriceRange, QueryResult, UniversitiesQueryParams
from schemas.university import University, UniversityStats
from services.block_composer import BlockRegistry
from services.content_source import ContentSource
from services.course_service import CourseService
from services.exceptions import FetchFailure
from services.page_service import PageService
from services.post_service import PostService
from services.query_cache import QueryCache
from services.resource_service import CachedResourceService
from services.university_service import UniversityService

router = APIRouter(tags=["content"])  # mounted under /api/v1 by main.py
logger = logging.getLogger("api")


# ---------------------------------------------------------------- dependencies

def get_query_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


def get_content_source(request: Request) -> ContentSource:
    return request.app.state.content_source


def get_block_registry(request: Request) -> BlockRegistry:
    return request.app.state.block_registry


def get_course_service(
    source: ContentSource = Depends(get_content_source),
    cache: QueryCache = Depends(get_query_cache),
) -> CourseService:
    return CourseService(source, cache)


def get_university_service(
    source: ContentSource = Depends(get_content_source),
    cache: QueryCache = Depends(get_query_cache),
) -> UniversityService:
    return UniversityService(source, cache)


def get_post_service(
    source: ContentSource = Depends(get_content_source),
    cache: QueryCache = Depends(get_query_cache),
    registry: BlockRegistry = Depends(get_block_registry),
) -> PostService:
    return PostService(source, cache, registry)


def get_page_service(
    source: ContentSource = Depends(get_content_source),
    cache: QueryCache = Depends(get_query_cache),
    registry: BlockRegistry = Depends(get_block_registry),
) -> PageService:
    return PageService(source, cache, registry)


# --------------------------------------------------------------------- helpers

def _event(kind: str) -> str:
    return kind.replace(" ", "_")


def _request_id() -> str:
    req_id = get_request_id()
    if req_id is None:
        req_id = str(uuid4())
        set_request_id(req_id)
    return req_id


def _price_range(min_price: Optional[float], max_price: Optional[float]) -> Optional[PriceRange]:
    if min_price is None and max_price is None:
        return None
    return PriceRange(min=min_price or 0, max=max_price)


def _list_response(req_id: str, kind: str, result: QueryResult) -> ApiResponse:
    logger.info(f"{kind}_list_completed", extra={
        "request_id": req_id,
        "kind": kind,
        "page": result.page,
        "limit": result.limit,
        "total": result.total,
        "returned": len(result.items),
    })
    if result.is_empty:
        return ApiResponse(request_id=req_id, status="empty", data=result, message=EMPTY_RESULT_MESSAGE)
    return ApiResponse(request_id=req_id, status="ok", data=result)


def _not_found(kind: str, slug: Any) -> HTTPException:
    logger.info(f"{_event(kind)}_not_found", extra={"kind": kind, "slug": str(slug)})
    return HTTPException(
        status_code=404,
        detail=ErrorDetail(status="not_found", message=NOT_FOUND_MESSAGE.format(kind=kind)).model_dump(),
    )


def _fetch_failed(kind: str, req_id: str, error: FetchFailure) -> HTTPException:
    logger.error(f"{_event(kind)}_fetch_failed", extra={
        "request_id": req_id,
        "kind": kind,
        "attempts": error.attempts,
        "error": str(error.last_error),
        "error_type": type(error.last_error).__name__,
    })
    return HTTPException(
        status_code=502,
        detail=ErrorDetail(status="error", message=FETCH_FAILED_MESSAGE.format(kind=kind), retryable=True).model_dump(),
    )


def _internal_error(kind: str, req_id: str, error: Exception) -> HTTPException:
    logger.error(f"{_event(kind)}_request_failed", extra={
        "request_id": req_id,
        "kind": kind,
        "error": str(error),
        "error_type": type(error).__name__,
    })
    return HTTPException(
        status_code=500,
        detail="An internal error occurred while processing your request. Please try again later.",
    )


# --------------------------------------------------------------------- courses

@router.get("/courses", response_model=ApiResponse[QueryResult[Course]])
async def list_courses(
    page: Optional[str] = Query(None, description="Page number, starting at 1"),
    limit: Optional[str] = Query(None, description="Page size; defaults to 12"),
    search: Optional[str] = Query(None, description="Matches title, description, instructor and category"),
    category: Optional[str] = Query(None, description="Exact category; 'All Courses' disables the filter"),
    level: Optional[str] = Query(None),
    sort_by: Optional[Literal["title", "price", "rating", "studentsEnrolled", "duration"]] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    service: CourseService = Depends(get_course_service),
) -> ApiResponse:
    """Filtered, searched, sorted and paginated course catalogue."""
    req_id = _request_id()
    params = CoursesQueryParams(
        page=page,
        limit=limit,
        search=search,
        category=category,
        level=level,
        sort_by=sort_by,
        sort_order=sort_order,
        price_range=_price_range(min_price, max_price),
    )
    try:
        result = await service.list_courses(params)
        service.schedule_next_page(params, result)
        return _list_response(req_id, "courses", result)
    except FetchFailure as e:
        raise _fetch_failed("courses", req_id, e)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("courses", req_id, e)


@router.get("/courses/categories", response_model=ApiResponse[List[CourseCategory]])
async def list_course_categories(service: CourseService = Depends(get_course_service)) -> ApiResponse:
    """Course categories with counts, the 'All Courses' pseudo-category first."""
    req_id = _request_id()
    try:
        categories = await service.get_categories()
        return ApiResponse(request_id=req_id, status="ok", data=categories)
    except FetchFailure as e:
        raise _fetch_failed("course categories", req_id, e)


@router.get("/courses/featured", response_model=ApiResponse[List[Course]])
async def list_featured_courses(
    limit: int = Query(3, ge=1, le=50),
    service: CourseService = Depends(get_course_service),
) -> ApiResponse:
    req_id = _request_id()
    try:
        courses = await service.get_featured(limit)
    except FetchFailure as e:
        raise _fetch_failed("featured courses", req_id, e)
    if not courses:
        return ApiResponse(request_id=req_id, status="empty", data=[], message=EMPTY_RESULT_MESSAGE)
    return ApiResponse(request_id=req_id, status="ok", data=courses)


@router.get("/courses/{slug}", response_model=ApiResponse[Course])
async def get_course(slug: str, service: CourseService = Depends(get_course_service)) -> ApiResponse:
    req_id = _request_id()
    try:
        course = await service.get_course(slug)
    except FetchFailure as e:
        raise _fetch_failed("course", req_id, e)
    if course is None:
        raise _not_found("course", slug)
    return ApiResponse(request_id=req_id, status="ok", data=course)


@router.get("/courses/{course_id}/related", response_model=ApiResponse[List[Course]])
async def list_related_courses(
    course_id: int,
    limit: int = Query(3, ge=1, le=20),
    service: CourseService = Depends(get_course_service),
) -> ApiResponse:
    """Courses from the same category, topped up with others when the category is small."""
    req_id = _request_id()
    try:
        courses = await service.get_related(course_id, limit)
    except FetchFailure as e:
        raise _fetch_failed("related courses", req_id, e)
    if not courses:
        return ApiResponse(request_id=req_id, status="empty", data=[], message=EMPTY_RESULT_MESSAGE)
    return ApiResponse(request_id=req_id, status="ok", data=courses)


# ---------------------------------------------------------------- universities

@router.get("/universities", response_model=ApiResponse[QueryResult[University]])
async def list_universities(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None, description="Page size; defaults to 6"),
    search: Optional[str] = Query(None, description="Matches name, location and description"),
    country: Optional[str] = Query(None),
    university_type: Optional[str] = Query(None, alias="universityType"),
    status: Optional[str] = Query("active"),
    featured: Optional[bool] = Query(None),
    sort_by: Optional[Literal["name", "founded", "students", "ranking"]] = Query("name", alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    service: UniversityService = Depends(get_university_service),
) -> ApiResponse:
    req_id = _request_id()
    params = UniversitiesQueryParams(
        page=page,
        limit=limit,
        search=search,
        country=country,
        university_type=university_type,
        status=status,
        featured=featured,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    try:
        result = await service.list_universities(params)
        service.schedule_next_page(params, result)
        return _list_response(req_id, "universities", result)
    except FetchFailure as e:
        raise _fetch_failed("universities", req_id, e)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("universities", req_id, e)


@router.get("/universities/featured", response_model=ApiResponse[List[University]])
async def list_featured_universities(
    limit: int = Query(3, ge=1, le=50),
    service: UniversityService = Depends(get_university_service),
) -> ApiResponse:
    req_id = _request_id()
    try:
        universities = await service.get_featured(limit)
    except FetchFailure as e:
        raise _fetch_failed("featured universities", req_id, e)
    if not universities:
        return ApiResponse(request_id=req_id, status="empty", data=[], message=EMPTY_RESULT_MESSAGE)
    return ApiResponse(request_id=req_id, status="ok", data=universities)


@router.get("/universities/stats", response_model=ApiResponse[UniversityStats])
async def get_university_stats(service: UniversityService = Depends(get_university_service)) -> ApiResponse:
    req_id = _request_id()
    try:
        stats = await service.get_stats()
    except FetchFailure as e:
        raise _fetch_failed("university stats", req_id, e)
    return ApiResponse(request_id=req_id, status="ok", data=stats)


@router.get("/universities/{slug}", response_model=ApiResponse[University])
async def get_university(slug: str, service: UniversityService = Depends(get_university_service)) -> ApiResponse:
    req_id = _request_id()
    try:
        university = await service.get_university(slug)
    except FetchFailure as e:
        raise _fetch_failed("university", req_id, e)
    if university is None:
        raise _not_found("university", slug)
    return ApiResponse(request_id=req_id, status="ok", data=university)


# ------------------------------------------------------------- posts and pages

@router.get("/posts", response_model=ApiResponse[QueryResult[Post]])
async def list_posts(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None, description="Page size; defaults to 9"),
    search: Optional[str] = Query(None, description="Matches title and meta description"),
    category: Optional[str] = Query(None, description="Category id"),
    sort_by: Optional[Literal["title", "publishedAt"]] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    service: PostService = Depends(get_post_service),
) -> ApiResponse:
    req_id = _request_id()
    params = PostsQueryParams(
        page=page,
        limit=limit,
        search=search,
        category=category,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    try:
        result = await service.list_posts(params)
        service.schedule_next_page(params, result)
        return _list_response(req_id, "posts", result)
    except FetchFailure as e:
        raise _fetch_failed("posts", req_id, e)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("posts", req_id, e)


@router.get("/posts/{slug}", response_model=ApiResponse[ComposedDocument])
async def get_post(slug: str, service: PostService = Depends(get_post_service)) -> ApiResponse:
    """A post with its layout rendered through the block registry."""
    req_id = _request_id()
    try:
        document = await service.get_post(slug)
    except FetchFailure as e:
        raise _fetch_failed("post", req_id, e)
    if document is None:
        raise _not_found("post", slug)
    return ApiResponse(request_id=req_id, status="ok", data=document)


@router.get("/pages/{slug}", response_model=ApiResponse[ComposedDocument])
async def get_page(slug: str, service: PageService = Depends(get_page_service)) -> ApiResponse:
    """A CMS page with its layout rendered through the block registry."""
    req_id = _request_id()
    try:
        document = await service.get_page(slug)
    except FetchFailure as e:
        raise _fetch_failed("page", req_id, e)
    if document is None:
        raise _not_found("page", slug)
    return ApiResponse(request_id=req_id, status="ok", data=document)


# ----------------------------------------------------------------------- cache

@router.post("/cache/invalidate", response_model=ApiResponse[Dict[str, Any]])
async def invalidate_cache(
    request: CacheInvalidateRequest,
    cache: QueryCache = Depends(get_query_cache),
) -> ApiResponse:
    """Mark every cached entry under a key prefix stale, e.g. after a CMS publish."""
    req_id = _request_id()
    matched = cache.invalidate(request.key_prefix)
    return ApiResponse(request_id=req_id, status="ok", data={"key_prefix": request.key_prefix, "matched": matched})


@router.post("/cache/prefetch", response_model=ApiResponse[Dict[str, Any]])
async def prefetch(
    request: CachePrefetchRequest,
    source: ContentSource = Depends(get_content_source),
    cache: QueryCache = Depends(get_query_cache),
    registry: BlockRegistry = Depends(get_block_registry),
) -> ApiResponse:
    """Warm the detail entry for one record. Never fails on fetch errors."""
    req_id = _request_id()
    services: Dict[str, CachedResourceService] = {
        "courses": CourseService(source, cache),
        "universities": UniversityService(source, cache),
        "posts": PostService(source, cache, registry),
        "pages": PageService(source, cache, registry),
    }
    service = services[request.kind]
    await service.prefetch_detail(request.slug)
    cached = cache.get_cached(service.keys.detail(request.slug)) is not None
    return ApiResponse(request_id=req_id, status="ok", data={"kind": request.kind, "slug": request.slug, "cached": cached})


@router.get("/cache/stats", response_model=ApiResponse[Dict[str, Any]])
async def cache_stats(cache: QueryCache = Depends(get_query_cache)) -> ApiResponse:
    req_id = _request_id()
    return ApiResponse(request_id=req_id, status="ok", data=cache.stats())
