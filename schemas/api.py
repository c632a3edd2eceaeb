"""
API contract schemas for versioned endpoints.

Design notes:
- ApiResponse is a generic wrapper model so different endpoints return consistent envelopes while varying `data` types.
- `status` distinguishes the states a client must render differently: data, an empty
  result, a missing resource, or a failed fetch that can be retried.
"""
from __future__ import annotations

from typing import Any, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator

T = TypeVar("T")

ViewStatus = Literal["ok", "empty", "not_found", "error"]

EMPTY_RESULT_MESSAGE = "No results match the selected filters."
NOT_FOUND_MESSAGE = "The requested {kind} does not exist."
FETCH_FAILED_MESSAGE = "Failed to load {kind}. Please try again."


class ApiResponse(BaseModel, Generic[T]):
    """Generic response wrapper to stabilize external API while allowing inner schema evolution.

    Always return this envelope so clients can rely on `request_id` and `status`, irrespective of changes in `data`.
    """
    request_id: str
    status: ViewStatus = "ok"
    data: Optional[T] = None
    message: Optional[str] = None


class ErrorDetail(BaseModel):
    status: ViewStatus
    message: str
    retryable: bool = False


class CacheInvalidateRequest(BaseModel):
    key_prefix: List[Any] = Field(description="Key prefix such as ['courses'] or ['courses', 'detail', 'ielts-preparation']")

    @field_validator("key_prefix")
    @classmethod
    def validate_prefix(cls, v: List[Any]) -> List[Any]:
        if not v:
            raise ValueError("key_prefix must name at least the resource kind")
        return v


class CachePrefetchRequest(BaseModel):
    kind: Literal["courses", "universities", "posts", "pages"]
    slug: str = Field(min_length=1, max_length=200)
