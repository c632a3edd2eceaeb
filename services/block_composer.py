"""
Block Registry and Composer.

The registry maps a block discriminant ("faq", "cta", ...) to a renderer. `compose` walks
an ordered list of ContentItems and renders each one whose discriminant is registered.
Unregistered discriminants produce nothing: content editors can add block types before
the renderers for them ship.

The composer does not manage nesting. A renderer whose block holds nested blocks
composes them itself. Renderer exceptions propagate to the caller.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from schemas.content import ContentItem, content_items_from_layout

logger = logging.getLogger("block_composer")

Renderer = Callable[[Dict[str, Any]], Any]


class BlockRegistry:
    """Lookup table from discriminant to renderer, built once at start-up."""

    def __init__(self, renderers: Optional[Mapping[str, Renderer]] = None):
        self._renderers: Dict[str, Renderer] = {}
        for discriminant, renderer in (renderers or {}).items():
            self.add(discriminant, renderer)

    def add(self, discriminant: str, renderer: Renderer) -> None:
        if not discriminant or not discriminant.strip():
            raise ValueError("Block discriminant must be a non-empty string")
        if discriminant in self._renderers:
            raise ValueError(f"Renderer already registered for block type '{discriminant}'")
        self._renderers[discriminant] = renderer

    def register(self, discriminant: str) -> Callable[[Renderer], Renderer]:
        """Decorator form of `add`."""
        def _wrap(renderer: Renderer) -> Renderer:
            self.add(discriminant, renderer)
            return renderer
        return _wrap

    def get(self, discriminant: str) -> Optional[Renderer]:
        return self._renderers.get(discriminant)

    def discriminants(self) -> List[str]:
        return list(self._renderers)

    def __contains__(self, discriminant: object) -> bool:
        return discriminant in self._renderers

    def __len__(self) -> int:
        return len(self._renderers)


RegistryLike = Union[BlockRegistry, Mapping[str, Renderer]]


def compose(items: Iterable[ContentItem], registry: RegistryLike) -> List[Any]:
    """Render `items` in order, skipping any whose discriminant has no renderer."""
    rendered: List[Any] = []
    for item in items:
        renderer = registry.get(item.discriminant)
        if renderer is None:
            logger.debug(f"No renderer for block type '{item.discriminant}', skipping")
            continue
        rendered.append(renderer(dict(item.fields)))
    return rendered


def compose_layout(layout: Optional[List[Mapping[str, Any]]], registry: RegistryLike) -> Tuple[List[Any], List[str]]:
    """Compose a raw CMS layout. Returns the rendered blocks and the block types that were skipped."""
    items = content_items_from_layout(layout)
    skipped = [item.discriminant for item in items if registry.get(item.discriminant) is None]
    if skipped:
        logger.info(f"Layout contains unsupported block types: {sorted(set(skipped))}")
    return compose(items, registry), skipped
