"""Exceptions raised across the content services."""
from __future__ import annotations

from typing import Any, Optional, Tuple


class ContentServiceError(Exception):
    """Base class for content service errors."""


class ContentSourceError(ContentServiceError):
    """The content source could not be reached or answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UnknownResourceKind(ContentServiceError):
    """A collection name the content source does not serve."""

    def __init__(self, kind: str):
        super().__init__(f"Unknown resource kind: {kind}")
        self.kind = kind


class FetchFailure(ContentServiceError):
    """A cached fetch failed after its retry budget was exhausted."""

    def __init__(self, key: Tuple[Any, ...], attempts: int, last_error: BaseException):
        super().__init__(f"Fetch for {key!r} failed after {attempts} attempt(s): {last_error}")
        self.key = key
        self.attempts = attempts
        self.last_error = last_error

    @property
    def resource_kind(self) -> str:
        return str(self.key[0]) if self.key else "resource"
