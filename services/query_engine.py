"""
List Query Engine: filter, search, range, sort and paginate an in-memory collection.

Steps run in a fixed order: exact-match filters, search, numeric range, sort, pagination.
Everything here is synchronous and never mutates the input records.

Notes:
- Free-text numeric fields ("NPR 25,000", "12 weeks") are parsed on every query.
- Python's sort is stable, including with reverse=True, so ties keep their input order
  whichever direction is requested. Records whose sort key is missing go last.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

from schemas.query import QueryParameters, QueryResult, PriceRange, coerce_positive_int

logger = logging.getLogger("query_engine")

R = TypeVar("R")
Getter = Callable[[Any], Any]

_NUMBER_WITH_SEPARATORS = re.compile(r"\d[\d,]*")
_LEADING_INT = re.compile(r"\d+")


def parse_numeric(value: Any) -> float:
    """Numeric magnitude of a display string: first digit run, thousands separators dropped.

    "NPR 25,000" -> 25000, "Free" -> 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    if not value:
        return 0
    match = _NUMBER_WITH_SEPARATORS.search(str(value))
    if not match:
        return 0
    digits = match.group(0).replace(",", "")
    return int(digits) if digits else 0


def parse_leading_int(value: Any) -> int:
    """First integer in a text such as "12 weeks" -> 12; 0 when there is none."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if not value:
        return 0
    match = _LEADING_INT.search(str(value))
    return int(match.group(0)) if match else 0


def field_getter(*names: str) -> Getter:
    """Read the first present attribute or key out of a record (model or dict)."""
    def _get(record: Any) -> Any:
        for name in names:
            if isinstance(record, Mapping):
                if name in record:
                    return record[name]
            elif hasattr(record, name):
                return getattr(record, name)
        return None
    return _get


@dataclass(frozen=True)
class QueryConfig:
    """How a collection is queried: which fields filter, search, sort and bound by range."""
    default_limit: int = 12
    filter_fields: Mapping[str, Getter] = field(default_factory=dict)
    search_fields: Sequence[Getter] = field(default_factory=tuple)
    sort_keys: Mapping[str, Getter] = field(default_factory=dict)
    range_field: Optional[Getter] = None


def _matches(actual: Any, expected: Any) -> bool:
    if isinstance(actual, (list, tuple, set, frozenset)):
        return expected in actual
    return actual == expected


def apply_filters(records: Iterable[R], filters: Mapping[str, Any], config: QueryConfig) -> List[R]:
    """Keep records matching every configured filter (AND)."""
    out = list(records)
    for name, expected in filters.items():
        getter = config.filter_fields.get(name)
        if getter is None:
            logger.debug(f"Ignoring filter '{name}' not configured for this collection")
            continue
        out = [r for r in out if _matches(getter(r), expected)]
    return out


def apply_search(records: Iterable[R], search: Optional[str], config: QueryConfig) -> List[R]:
    """Keep records where the search text appears in any searchable field, ignoring case."""
    if not search:
        return list(records)
    needle = search.lower()
    out: List[R] = []
    for record in records:
        for getter in config.search_fields:
            value = getter(record)
            if value and needle in str(value).lower():
                out.append(record)
                break
    return out


def apply_range(records: Iterable[R], price_range: Optional[PriceRange], config: QueryConfig) -> List[R]:
    """Keep records whose parsed numeric field lies within the inclusive range."""
    if price_range is None or config.range_field is None:
        return list(records)
    return [r for r in records if price_range.contains(parse_numeric(config.range_field(r)))]


def sort_records(records: Iterable[R], sort_by: Optional[str], sort_order: str, config: QueryConfig) -> List[R]:
    out = list(records)
    if not sort_by:
        return out
    getter = config.sort_keys.get(sort_by)
    if getter is None:
        logger.debug(f"Ignoring sort field '{sort_by}' not configured for this collection")
        return out

    present: List[tuple] = []
    missing: List[R] = []
    for record in out:
        key = getter(record)
        if key is None:
            missing.append(record)
            continue
        if isinstance(key, str):
            key = key.lower()
        present.append((key, record))

    present.sort(key=lambda pair: pair[0], reverse=(sort_order == "desc"))
    return [record for _, record in present] + missing


def resolve_limit(limit: Any, default_limit: int) -> int:
    return coerce_positive_int(limit) or default_limit


def paginate(records: Sequence[R], page: Any, limit: Any, default_limit: int) -> QueryResult:
    page_number = coerce_positive_int(page) or 1
    page_size = resolve_limit(limit, default_limit)
    start = (page_number - 1) * page_size
    return QueryResult.build(
        items=list(records[start:start + page_size]),
        total=len(records),
        page=page_number,
        limit=page_size,
    )


def query(collection: Iterable[R], params: QueryParameters, config: QueryConfig) -> QueryResult:
    """Filter, search, range-bound, sort and paginate `collection` per `params`."""
    records = apply_filters(collection, params.active_filters(), config)
    records = apply_search(records, params.search, config)
    records = apply_range(records, params.price_range, config)
    records = sort_records(records, params.sort_by, params.sort_order, config)
    return paginate(records, params.page, params.limit, config.default_limit)


def count_by(records: Iterable[Any], getter: Getter) -> Dict[Any, int]:
    """Occurrences of each value of a field, in first-seen order."""
    counts: Dict[Any, int] = {}
    for record in records:
        value = getter(record)
        if value is None or value == "":
            continue
        counts[value] = counts.get(value, 0) + 1
    return counts
