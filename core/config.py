"""
Core configuration module for environment variables and settings management.

Design choices:
- Uses python-dotenv to load environment variables from a .env file when present.
- Keeps Settings a plain pydantic BaseModel filled from os.getenv, so tests can build one directly.
- Provides a single get_settings() accessor with LRU caching to avoid repeated parsing.
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel


class Settings(BaseModel):
    environment: str = "dev"
    log_level: str = "INFO"

    # Where content comes from: "local" JSON seed files or a "remote" headless CMS
    content_source: str = "local"
    content_data_dir: str = "data"
    cms_api_base: str = "http://localhost:3000/api"
    cms_api_token: Optional[str] = None

    # Fetch and retry policy for the query cache
    fetch_timeout_seconds: float = 20.0
    retry_count: int = 2
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0

    # Defaults used when a cached resource has no specific options
    cache_stale_seconds: float = 60.0
    cache_gc_seconds: float = 300.0

    # API versioning (useful for mounting routers and future deprecations)
    api_v1_prefix: str = "/api/v1"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load environment variables (from .env if present) and build a Settings object.

    This function is cached so app startup and repeated imports are efficient.
    """
    load_dotenv()  # no-op if .env not present
    return Settings(
        environment=os.getenv("ENVIRONMENT", "dev"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        content_source=os.getenv("CONTENT_SOURCE", "local").lower(),
        content_data_dir=os.getenv("CONTENT_DATA_DIR", "data"),
        cms_api_base=os.getenv("CMS_API_BASE", "http://localhost:3000/api"),
        cms_api_token=os.getenv("CMS_API_TOKEN"),
        fetch_timeout_seconds=float(os.getenv("FETCH_TIMEOUT_SECONDS", "20")),
        retry_count=int(os.getenv("RETRY_COUNT", "2")),
        retry_base_delay_seconds=float(os.getenv("RETRY_BASE_DELAY_SECONDS", "1")),
        retry_max_delay_seconds=float(os.getenv("RETRY_MAX_DELAY_SECONDS", "30")),
        cache_stale_seconds=float(os.getenv("CACHE_STALE_SECONDS", "60")),
        cache_gc_seconds=float(os.getenv("CACHE_GC_SECONDS", "300")),
        api_v1_prefix=os.getenv("API_V1_PREFIX", "/api/v1"),
    )
