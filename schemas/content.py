"""
Content schemas: tagged blocks, pages and blog posts.

Design choices:
- CMS layouts arrive as raw dicts tagged with `blockType`. They are kept raw on
  Page/Post so unknown block types survive round-trips, and turned into
  ContentItem only when a layout is composed.
- ContentItem separates the tag (`discriminant`) from the payload (`fields`) so the
  composer never has to know which keys a block carries.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger("content")

BLOCK_TYPE_KEY = "blockType"


class ContentItem(BaseModel):
    discriminant: str = Field(min_length=1, description="Block type name, e.g. 'faq' or 'cta'")
    fields: Dict[str, Any] = Field(default_factory=dict, description="Shape-specific payload")

    model_config = ConfigDict(frozen=True)

    @field_validator("discriminant")
    @classmethod
    def validate_discriminant(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("discriminant must be a non-empty string")
        return cleaned

    @classmethod
    def from_block(cls, raw: Mapping[str, Any]) -> "ContentItem":
        """Build an item from a raw CMS block such as {"blockType": "faq", "title": ...}."""
        payload = {k: v for k, v in raw.items() if k != BLOCK_TYPE_KEY}
        return cls(discriminant=raw.get(BLOCK_TYPE_KEY) or "", fields=payload)


def content_items_from_layout(layout: Optional[List[Mapping[str, Any]]]) -> List[ContentItem]:
    """Convert a raw CMS layout into ContentItems, dropping blocks that carry no type tag."""
    items: List[ContentItem] = []
    for index, raw in enumerate(layout or []):
        block_type = raw.get(BLOCK_TYPE_KEY) if isinstance(raw, Mapping) else None
        if not isinstance(block_type, str) or not block_type.strip():
            logger.warning(f"Skipping layout block at index {index} without a blockType")
            continue
        items.append(ContentItem.from_block(raw))
    return items


class RenderedBlock(BaseModel):
    """Presentational view model produced by a block renderer."""
    block_type: str
    component: str
    props: Dict[str, Any] = Field(default_factory=dict)


class PostCategory(BaseModel):
    id: str
    title: str


class PostMeta(BaseModel):
    description: Optional[str] = None
    image: Optional[str] = None


class Post(BaseModel):
    id: int
    slug: str = Field(min_length=1)
    title: str
    categories: List[PostCategory] = Field(default_factory=list)
    meta: PostMeta = Field(default_factory=PostMeta)
    published_at: Optional[str] = Field(default=None, alias="publishedAt")
    layout: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class Page(BaseModel):
    id: int
    slug: str = Field(min_length=1)
    title: str
    layout: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class ComposedDocument(BaseModel):
    """A page or post whose layout has been run through the block composer."""
    slug: str
    title: str
    blocks: List[RenderedBlock] = Field(default_factory=list)
    skipped_block_types: List[str] = Field(default_factory=list)
    meta: Optional[PostMeta] = None
    categories: List[PostCategory] = Field(default_factory=list)
