"""
Blog posts.

Posts are cached as fetched; their layouts are composed into rendered blocks on every
read, so a change to the block registry never serves stale markup from the cache.
"""
from __future__ import annotations

import logging
from typing import Optional

from schemas.content import ComposedDocument, Page, Post
from schemas.query import PostsQueryParams, QueryResult
from services.block_composer import RegistryLike, compose_layout
from services.content_source import ContentSource
from services.query_cache import QueryCache
from services.resource_service import CachedResourceService

logger = logging.getLogger("post_service")


def compose_document(record: Post | Page, registry: RegistryLike) -> ComposedDocument:
    blocks, skipped = compose_layout(record.layout, registry)
    if isinstance(record, Post):
        return ComposedDocument(
            slug=record.slug,
            title=record.title,
            blocks=blocks,
            skipped_block_types=skipped,
            meta=record.meta,
            categories=record.categories,
        )
    return ComposedDocument(slug=record.slug, title=record.title, blocks=blocks, skipped_block_types=skipped)


class PostService(CachedResourceService):
    kind = "posts"

    def __init__(self, source: ContentSource, cache: QueryCache, registry: RegistryLike) -> None:
        super().__init__(source, cache)
        self.registry = registry

    async def list_posts(self, params: Optional[PostsQueryParams] = None) -> QueryResult:
        return await self.list(params or PostsQueryParams())

    async def get_post(self, slug: str) -> Optional[ComposedDocument]:
        post = await self.detail(slug)
        if post is None:
            return None
        return compose_document(post, self.registry)

