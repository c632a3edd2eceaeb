"""
CMS pages, composed through the block registry the same way posts are.
"""
from __future__ import annotations

from typing import Optional

from schemas.content import ComposedDocument
from services.block_composer import RegistryLike
from services.content_source import ContentSource
from services.post_service import compose_document
from services.query_cache import QueryCache
from services.resource_service import CachedResourceService


class PageService(CachedResourceService):
    kind = "pages"

    def __init__(self, source: ContentSource, cache: QueryCache, registry: RegistryLike) -> None:
        super().__init__(source, cache)
        self.registry = registry

    async def get_page(self, slug: str) -> Optional[ComposedDocument]:
        page = await self.detail(slug)
        if page is None:
            return None
        return compose_document(page, self.registry)
