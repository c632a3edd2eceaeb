"""
Content source boundary.

Two implementations of the same contract:
- LocalContentSource keeps collections in memory (loaded from JSON seed files) and runs
  the list query engine locally.
- RemoteContentSource asks a headless CMS REST API (Payload-style `where`/`sort`/`page`/
  `limit` parameters) to filter and paginate natively. Queries the CMS cannot answer
  natively (numeric ranges and sorts over free-text price/duration) are run locally over
  the full collection.

`fetch_by_slug` returns None when nothing matches; transport problems raise
ContentSourceError so the query cache can retry them.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp
from pydantic import BaseModel, ValidationError

from schemas.query import QueryParameters, QueryResult
from services import query_engine
from services.collections import CollectionSpec, get_collection
from services.exceptions import ContentSourceError

logger = logging.getLogger("content_source")

# Page size used when a source has to walk a whole collection
FULL_SCAN_PAGE_SIZE = 100


class ContentSource(ABC):
    """Where pages, posts, courses and universities come from."""

    @abstractmethod
    async def fetch_collection(self, kind: str, params: QueryParameters) -> QueryResult:
        """Filtered, sorted and paginated view of a collection."""

    @abstractmethod
    async def fetch_by_slug(self, kind: str, slug: str) -> Optional[BaseModel]:
        """Single record by slug, or None."""

    @abstractmethod
    async def fetch_all(self, kind: str) -> List[BaseModel]:
        """Every record of a collection, unfiltered, in source order."""

    async def close(self) -> None:
        return None


def _parse_records(spec: CollectionSpec, raw_items: Sequence[Any], origin: str) -> List[BaseModel]:
    out: List[BaseModel] = []
    invalid_count = 0
    for i, item in enumerate(raw_items):
        if not isinstance(item, dict):
            invalid_count += 1
            continue
        try:
            out.append(spec.model.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Failed to parse {spec.kind} record at index {i} from {origin}: {e}")
            invalid_count += 1
    if invalid_count:
        logger.warning(f"Skipped {invalid_count} invalid {spec.kind} records out of {len(raw_items)} total")
    return out


class LocalContentSource(ContentSource):
    """In-memory collections, loaded lazily from `<data_dir>/<kind>.json`."""

    def __init__(self, data_dir: str = "data", collections: Optional[Dict[str, Sequence[Any]]] = None) -> None:
        self._data_dir = Path(data_dir)
        self._records: Dict[str, List[BaseModel]] = {}
        self._by_slug: Dict[str, Dict[str, BaseModel]] = {}
        self._load_lock = asyncio.Lock()
        for kind, items in (collections or {}).items():
            spec = get_collection(kind)
            parsed = [item if isinstance(item, spec.model) else spec.model.model_validate(item) for item in items]
            self._index(kind, parsed)

    def _index(self, kind: str, records: List[BaseModel]) -> None:
        self._records[kind] = records
        self._by_slug[kind] = {getattr(r, "slug"): r for r in records}

    async def _ensure_loaded(self, kind: str) -> List[BaseModel]:
        spec = get_collection(kind)
        if kind in self._records:
            return self._records[kind]
        async with self._load_lock:
            if kind not in self._records:
                records = await asyncio.to_thread(self._load_file, spec)
                self._index(kind, records)
        return self._records[kind]

    def _load_file(self, spec: CollectionSpec) -> List[BaseModel]:
        path = self._data_dir / f"{spec.kind}.json"
        if not path.exists():
            logger.warning(f"No {spec.kind} file found at {path}")
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in {path}: {e}")
            return []

        if isinstance(raw, list):
            items = raw
        elif isinstance(raw, dict):
            # Accept both {"docs": [...]} exports and {"<kind>": [...]} files
            items = raw.get("docs", raw.get(spec.kind, []))
        else:
            logger.error(f"Invalid JSON structure in {path}")
            return []

        records = _parse_records(spec, items, str(path))
        logger.info(f"Loaded {len(records)} {spec.kind} from {path}")
        return records

    async def fetch_collection(self, kind: str, params: QueryParameters) -> QueryResult:
        records = await self._ensure_loaded(kind)
        return query_engine.query(records, params, get_collection(kind).query_config)

    async def fetch_by_slug(self, kind: str, slug: str) -> Optional[BaseModel]:
        await self._ensure_loaded(kind)
        return self._by_slug.get(kind, {}).get(slug)

    async def fetch_all(self, kind: str) -> List[BaseModel]:
        return list(await self._ensure_loaded(kind))


# CMS field names per collection used to build the `where[or]` search clause
_REMOTE_SEARCH_FIELDS: Dict[str, Tuple[str, ...]] = {
    "courses": ("title", "description", "instructor", "category"),
    "universities": ("name", "location", "description"),
    "posts": ("title", "meta.description"),
    "pages": ("title",),
}

# Python filter names that differ from the CMS field names
_REMOTE_FILTER_NAMES: Dict[str, str] = {
    "university_type": "universityType",
}

# Sorts over free-text numbers the CMS would order lexically
_LOCAL_ONLY_SORTS = {"price", "duration"}


class RemoteContentSource(ContentSource):
    """Headless CMS REST client built on aiohttp."""

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 20.0, depth: int = 2) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._depth = depth
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"Accept": "application/json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _get_json(self, kind: str, query: List[Tuple[str, str]]) -> Dict[str, Any]:
        url = f"{self._base_url}/{kind}"
        start = time.perf_counter()
        try:
            async with self._get_session().get(url, params=query) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error("cms_request_failed", extra={"kind": kind, "status_code": response.status, "error": error_text[:200]})
                    raise ContentSourceError(f"CMS returned {response.status} for {kind}", status_code=response.status)
                payload = await response.json()
        except aiohttp.ClientError as e:
            raise ContentSourceError(f"CMS request for {kind} failed: {e}") from e

        logger.debug("cms_request_completed", extra={
            "kind": kind,
            "duration_ms": round((time.perf_counter() - start) * 1000, 2),
        })
        return payload

    @staticmethod
    def _where_clause(kind: str, params: QueryParameters) -> List[Tuple[str, str]]:
        query: List[Tuple[str, str]] = []
        for name, value in params.active_filters().items():
            field_name = _REMOTE_FILTER_NAMES.get(name, name)
            if kind == "posts" and name == "category":
                query.append(("where[categories][in]", str(value)))
            else:
                encoded = str(value).lower() if isinstance(value, bool) else str(value)
                query.append((f"where[{field_name}][equals]", encoded))
        if params.search:
            for i, field_name in enumerate(_REMOTE_SEARCH_FIELDS.get(kind, ())):
                query.append((f"where[or][{i}][{field_name}][contains]", params.search))
        return query

    def _needs_local_query(self, params: QueryParameters) -> bool:
        return params.price_range is not None or params.sort_by in _LOCAL_ONLY_SORTS

    async def fetch_collection(self, kind: str, params: QueryParameters) -> QueryResult:
        spec = get_collection(kind)
        if self._needs_local_query(params):
            records = await self.fetch_all(kind)
            return query_engine.query(records, params, spec.query_config)

        page = params.page
        limit = query_engine.resolve_limit(params.limit, spec.query_config.default_limit)
        query = self._where_clause(kind, params)
        if params.sort_by:
            query.append(("sort", f"-{params.sort_by}" if params.sort_order == "desc" else params.sort_by))
        query.extend([("page", str(page)), ("limit", str(limit)), ("depth", str(self._depth))])

        payload = await self._get_json(kind, query)
        items = _parse_records(spec, payload.get("docs", []), self._base_url)
        return QueryResult.build(items=items, total=int(payload.get("totalDocs", len(items))), page=page, limit=limit)

    async def fetch_all(self, kind: str) -> List[BaseModel]:
        spec = get_collection(kind)
        records: List[BaseModel] = []
        page = 1
        while True:
            payload = await self._get_json(kind, [
                ("page", str(page)),
                ("limit", str(FULL_SCAN_PAGE_SIZE)),
                ("depth", str(self._depth)),
            ])
            records.extend(_parse_records(spec, payload.get("docs", []), self._base_url))
            if not payload.get("hasNextPage"):
                return records
            page += 1

    async def fetch_by_slug(self, kind: str, slug: str) -> Optional[BaseModel]:
        spec = get_collection(kind)
        payload = await self._get_json(kind, [
            ("where[slug][equals]", slug),
            ("limit", "1"),
            ("depth", str(self._depth)),
        ])
        docs = _parse_records(spec, payload.get("docs", []), self._base_url)
        return docs[0] if docs else None


def build_content_source(settings) -> ContentSource:
    """Pick the content source named by settings.content_source."""
    if settings.content_source == "remote":
        logger.info(f"Using remote content source at {settings.cms_api_base}")
        return RemoteContentSource(
            base_url=settings.cms_api_base,
            token=settings.cms_api_token,
            timeout=settings.fetch_timeout_seconds,
        )
    logger.info(f"Using local content source from {settings.content_data_dir}")
    return LocalContentSource(data_dir=settings.content_data_dir)
