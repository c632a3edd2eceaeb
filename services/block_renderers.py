"""
Renderers for the site's page-builder blocks.

Each renderer turns a block's CMS fields into a RenderedBlock view model: the component
name the frontend mounts and the props it receives, with the CMS defaults filled in.
`build_block_registry()` assembles them into the registry used by page and post
services; it is called once at application start-up.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from schemas.content import RenderedBlock
from services.block_composer import BlockRegistry, compose_layout


def _media_url(value: Any, fallback: Optional[str] = None) -> Optional[str]:
    """URL of an upload field, which the CMS sends either populated ({"url": ...}) or as a plain string."""
    if isinstance(value, dict):
        return value.get("url") or fallback
    if isinstance(value, str) and value:
        return value
    return fallback


def _items(fields: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
    value = fields.get(name)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _block(block_type: str, component: str, **props: Any) -> RenderedBlock:
    return RenderedBlock(block_type=block_type, component=component, props=props)


def transform_slides(slides: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Normalize slider slides: resolve media URLs and apply text/overlay defaults."""
    out = []
    for index, slide in enumerate(slides):
        slide_type = slide.get("type", "image")
        out.append({
            "id": slide.get("id") or f"slide-{index + 1}",
            "type": slide_type,
            "src": (
                slide.get("videoUrl")
                if slide_type == "video"
                else _media_url(slide.get("backgroundImage"), slide.get("backgroundImageUrl"))
            ),
            "poster": _media_url(slide.get("posterImage")),
            "alt": slide.get("alt") or slide.get("title") or f"Slide {index + 1}",
            "title": slide.get("title"),
            "subtitle": slide.get("subtitle"),
            "description": slide.get("description"),
            "button": (
                {"text": slide["buttonText"], "link": slide.get("buttonLink") or "#"}
                if slide.get("buttonText")
                else None
            ),
            "textPosition": slide.get("textPosition", "center"),
            "textAlignment": slide.get("textAlignment", "center"),
            "overlayOpacity": slide.get("overlayOpacity", 0.4),
            "priority": slide.get("priority", index == 0),
        })
    return out


def build_block_registry() -> BlockRegistry:
    registry = BlockRegistry()

    @registry.register("banner")
    def render_banner(fields: Dict[str, Any]) -> RenderedBlock:
        return _block("banner", "BannerBlock", style=fields.get("style", "info"), content=fields.get("content"))

    @registry.register("content")
    def render_content(fields: Dict[str, Any]) -> RenderedBlock:
        columns = [
            {"size": column.get("size", "oneThird"), "richText": column.get("richText"), "link": column.get("link")}
            for column in _items(fields, "columns")
        ]
        return _block("content", "ContentBlock", columns=columns)

    @registry.register("cta")
    def render_cta(fields: Dict[str, Any]) -> RenderedBlock:
        links = [item.get("link", item) for item in _items(fields, "links")]
        return _block("cta", "CallToActionBlock", richText=fields.get("richText"), links=links)

    @registry.register("mediaBlock")
    def render_media(fields: Dict[str, Any]) -> RenderedBlock:
        return _block("mediaBlock", "MediaBlock", src=_media_url(fields.get("media")), caption=fields.get("caption"))

    @registry.register("archive")
    def render_archive(fields: Dict[str, Any]) -> RenderedBlock:
        return _block(
            "archive",
            "ArchiveBlock",
            introContent=fields.get("introContent"),
            relationTo=fields.get("relationTo", "posts"),
            populateBy=fields.get("populateBy", "collection"),
            limit=fields.get("limit", 10),
            categories=fields.get("categories", []),
        )

    @registry.register("faq")
    def render_faq(fields: Dict[str, Any]) -> RenderedBlock:
        faqs = [
            {
                "question": faq.get("question", ""),
                "answer": faq.get("answer"),
                "category": faq.get("category"),
                "featured": bool(faq.get("featured", False)),
                "tags": faq.get("tags", []),
            }
            for faq in _items(fields, "faqs")
        ]
        return _block(
            "faq",
            "FAQBlock",
            title=fields.get("title") or "Frequently Asked Questions",
            subtitle=fields.get("subtitle"),
            enableSearch=fields.get("enableSearch", True),
            searchPlaceholder=fields.get("searchPlaceholder") or "Search frequently asked questions...",
            layout=fields.get("layout", "accordion"),
            allowMultipleOpen=fields.get("allowMultipleOpen", False),
            showCategories=fields.get("showCategories", False),
            style=fields.get("style", "modern"),
            accentColor=fields.get("accentColor", "blue"),
            faqs=faqs,
        )

    @registry.register("testimonials")
    def render_testimonials(fields: Dict[str, Any]) -> RenderedBlock:
        testimonials = [
            {
                "quote": item.get("quote", ""),
                "name": item.get("name", ""),
                "designation": item.get("designation"),
                "company": item.get("company"),
                "src": _media_url(item.get("image"), item.get("fallbackImageUrl")),
                "rating": item.get("rating"),
            }
            for item in _items(fields, "testimonials")
        ]
        return _block(
            "testimonials",
            "TestimonialsBlock",
            heading=fields.get("heading"),
            description=fields.get("description"),
            testimonials=testimonials,
            autoplay=fields.get("autoplay", True),
            autoplayInterval=fields.get("autoplayInterval", 5),
            showNavigation=fields.get("showNavigation", True),
            showRatings=fields.get("showRatings", False),
            style=fields.get("style", "default"),
            backgroundColor=fields.get("backgroundColor", "slate"),
        )

    @registry.register("photoGallery")
    def render_photo_gallery(fields: Dict[str, Any]) -> RenderedBlock:
        photos = [
            {
                "src": _media_url(photo.get("image")),
                "title": photo.get("title"),
                "description": photo.get("description"),
                "alt": photo.get("alt") or photo.get("title") or "",
            }
            for photo in _items(fields, "photos")
        ]
        return _block(
            "photoGallery",
            "PhotoGalleryBlock",
            heading=fields.get("heading") or "Photo Gallery",
            description=fields.get("description"),
            layout=fields.get("layout", "grid"),
            columns=int(fields.get("columns", 3)),
            photos=photos,
            showImageCount=fields.get("showImageCount", True),
            buttonText=fields.get("buttonText") or "Show All Images",
            style=fields.get("style", "default"),
        )

    @registry.register("simpleSlider")
    def render_simple_slider(fields: Dict[str, Any]) -> RenderedBlock:
        autoplay = fields.get("autoPlaySettings") or {}
        appearance = fields.get("appearance") or {}
        navigation = fields.get("navigation") or {}
        return _block(
            "simpleSlider",
            "HeroSlider",
            slides=transform_slides(_items(fields, "slides")),
            autoPlay=autoplay.get("autoPlay", True),
            interval=autoplay.get("interval", 5000),
            pauseOnHover=autoplay.get("pauseOnHover", True),
            infiniteLoop=autoplay.get("infiniteLoop", True),
            height=appearance.get("height", "100vh"),
            animation=appearance.get("animation", "fade"),
            transitionDuration=appearance.get("transitionDuration", 800),
            showArrows=navigation.get("showArrows", True),
            showDots=navigation.get("showDots", True),
        )

    @registry.register("basicSlider")
    def render_basic_slider(fields: Dict[str, Any]) -> RenderedBlock:
        slides = [
            {
                "src": _media_url(slide.get("image")),
                "title": slide.get("title"),
                "description": slide.get("description"),
                "alt": slide.get("alt") or slide.get("title") or "",
            }
            for slide in _items(fields, "slides")
        ]
        return _block("basicSlider", "BasicSlider", slides=slides, autoplaySpeed=fields.get("autoplaySpeed", 3000))

    @registry.register("quoteCarousel")
    def render_quote_carousel(fields: Dict[str, Any]) -> RenderedBlock:
        quotes = [
            {
                "text": quote.get("text") or quote.get("quote", ""),
                "author": quote.get("author"),
                "role": quote.get("role"),
                "src": _media_url(quote.get("image")),
            }
            for quote in _items(fields, "quotes")
        ]
        return _block(
            "quoteCarousel",
            "QuoteCarouselBlock",
            title=fields.get("title"),
            subtitle=fields.get("subtitle"),
            quotes=quotes,
            autoPlay=fields.get("autoPlay", True),
            interval=fields.get("interval", 5000),
            showDots=fields.get("showDots", True),
        )

    @registry.register("universities")
    def render_universities(fields: Dict[str, Any]) -> RenderedBlock:
        info = fields.get("universityInfo") or {}
        navigation = [
            {
                "id": entry.get("id"),
                "label": entry.get("label"),
                "icon": entry.get("icon"),
                "content": entry.get("content"),
                "subItems": _items(entry, "subItems"),
            }
            for entry in _items(fields, "navigation")
        ]
        return _block(
            "universities",
            "UniversitiesBlock",
            universityInfo=info,
            heroImage=_media_url(fields.get("heroImage")),
            stats=[{"value": s.get("value"), "label": s.get("label")} for s in _items(fields, "stats")],
            navigation=navigation,
        )

    @registry.register("videoModalHero")
    def render_video_modal_hero(fields: Dict[str, Any]) -> RenderedBlock:
        return _block(
            "videoModalHero",
            "VideoModalHeroBlock",
            heading=fields.get("heading"),
            description=fields.get("description"),
            videoUrl=fields.get("videoUrl"),
            thumbnail=_media_url(fields.get("thumbnailImage"), fields.get("fallbackThumbnailUrl")),
            ctaText=fields.get("ctaText") or "Get started",
            ctaUrl=fields.get("ctaUrl") or "#",
            style=fields.get("style", "default"),
        )

    @registry.register("journeyWithUs")
    def render_journey(fields: Dict[str, Any]) -> RenderedBlock:
        services = [
            {
                "title": service.get("title"),
                "icon": service.get("icon"),
                "description": service.get("description"),
                "stepNumber": service.get("stepNumber", index + 1),
                "bgColor": service.get("bgColor"),
            }
            for index, service in enumerate(_items(fields, "services"))
        ]
        return _block(
            "journeyWithUs",
            "JourneyWithUsBlock",
            heading=fields.get("heading") or "Your Journey With Us",
            subheading=fields.get("subheading"),
            leftSectionTitle=fields.get("leftSectionTitle"),
            leftSectionDescription=fields.get("leftSectionDescription"),
            ctaButtonText=fields.get("ctaButtonText"),
            ctaButtonUrl=fields.get("ctaButtonUrl") or "#",
            services=services,
            autoSlide=fields.get("autoSlide", True),
            slideInterval=fields.get("slideInterval", 4000),
        )

    # Blocks that carry their own nested layout compose it with this same registry
    @registry.register("contentSection")
    def render_content_section(fields: Dict[str, Any]) -> RenderedBlock:
        children, _ = compose_layout(fields.get("blocks"), registry)
        return _block(
            "contentSection",
            "ContentSectionBlock",
            heading=fields.get("heading"),
            description=fields.get("description"),
            children=[child.model_dump() for child in children],
        )

    @registry.register("universityGroup")
    def render_university_group(fields: Dict[str, Any]) -> RenderedBlock:
        children, _ = compose_layout(fields.get("blocks"), registry)
        return _block(
            "universityGroup",
            "UniversityGroupBlock",
            title=fields.get("title"),
            description=fields.get("description"),
            universities=_items(fields, "universities"),
            children=[child.model_dump() for child in children],
        )

    return registry
