"""
Application entry point for the education consultancy content backend.

Design choices:
- Mounts versioned routers using a configurable prefix from core.config Settings.
- The content source, query cache and block registry are built once at startup and kept on
  app.state; routes reach them through dependencies and shutdown closes them.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.v1.routes import router as v1_router
from core.config import get_settings
from core.logging_config import configure_logging
from middleware import RequestContextMiddleware
from services.block_renderers import build_block_registry
from services.content_source import build_content_source
from services.query_cache import CacheOptions, QueryCache, RetryPolicy

_settings = get_settings()

# Configure structured logging
configure_logging(_settings.log_level)

app = FastAPI(title="Education Consultancy Content Backend", version="0.1.0")

# Basic CORS (can be restricted via settings in the future)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware, exclude_paths=["/"])


@app.get("/")
async def root():
    return {"message": "Server running"}


# Mount versioned API routers
app.include_router(v1_router, prefix=_settings.api_v1_prefix)


@app.on_event("startup")
async def startup_event():
    """Build the content source, the query cache and the block registry."""
    logger = logging.getLogger("startup")
    logger.info("Starting application initialization...")

    app.state.content_source = build_content_source(_settings)
    app.state.query_cache = QueryCache(
        retry_policy=RetryPolicy(
            retries=_settings.retry_count,
            base_delay=_settings.retry_base_delay_seconds,
            max_delay=_settings.retry_max_delay_seconds,
            timeout=_settings.fetch_timeout_seconds,
        ),
        default_options=CacheOptions(
            stale_time=_settings.cache_stale_seconds,
            gc_time=_settings.cache_gc_seconds,
        ),
    )
    app.state.block_registry = build_block_registry()

    logger.info(f"Registered {len(app.state.block_registry)} block renderers")
    logger.info("Application initialization completed successfully")


@app.on_event("shutdown")
async def shutdown_event():
    """Cancel background revalidation and release the CMS session."""
    logger = logging.getLogger("shutdown")
    await app.state.query_cache.close()
    await app.state.content_source.close()
    logger.info("Application shutdown completed")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, log_config=None)
