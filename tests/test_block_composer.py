import pytest

from schemas.content import ContentItem, RenderedBlock
from services.block_composer import BlockRegistry, compose, compose_layout
from services.block_renderers import build_block_registry


def _tagged(name):
    return lambda fields: (name, fields.get("title"))


def test_unknown_discriminants_are_skipped_in_order():
    registry = {"faq": _tagged("faq"), "cta": _tagged("cta")}
    items = [
        ContentItem(discriminant="faq", fields={"title": "first"}),
        ContentItem(discriminant="unknownBlock", fields={"title": "lost"}),
        ContentItem(discriminant="cta", fields={"title": "last"}),
    ]

    rendered = compose(items, registry)

    assert rendered == [("faq", "first"), ("cta", "last")]


def test_only_unknown_items_render_nothing():
    registry = BlockRegistry({"faq": _tagged("faq")})
    items = [ContentItem(discriminant="mystery"), ContentItem(discriminant="other")]
    assert compose(items, registry) == []
    assert compose([], registry) == []


def test_renderer_errors_propagate():
    def broken(fields):
        raise RuntimeError("bad block")

    registry = BlockRegistry({"faq": broken})
    with pytest.raises(RuntimeError):
        compose([ContentItem(discriminant="faq")], registry)


def test_renderer_cannot_mutate_item_fields():
    def mutating(fields):
        fields["title"] = "changed"
        return fields

    item = ContentItem(discriminant="faq", fields={"title": "before"})
    compose([item], BlockRegistry({"faq": mutating}))
    assert item.fields["title"] == "before"


def test_registry_rejects_duplicates_and_empty_tags():
    registry = BlockRegistry()

    @registry.register("faq")
    def render_faq(fields):
        return fields

    assert "faq" in registry
    assert len(registry) == 1
    with pytest.raises(ValueError):
        registry.add("faq", render_faq)
    with pytest.raises(ValueError):
        registry.add("  ", render_faq)


def test_content_item_requires_discriminant():
    with pytest.raises(ValueError):
        ContentItem(discriminant="")
    item = ContentItem.from_block({"blockType": "cta", "richText": "Book now"})
    assert item.discriminant == "cta"
    assert item.fields == {"richText": "Book now"}


def test_compose_layout_reports_skipped_types_and_drops_untagged_blocks():
    registry = build_block_registry()
    layout = [
        {"blockType": "faq", "faqs": [{"question": "Q?", "answer": "A."}]},
        {"blockType": "legacyWidget"},
        {"richText": "no tag"},
        {"blockType": "banner", "content": "Hello"},
    ]

    blocks, skipped = compose_layout(layout, registry)

    assert [b.block_type for b in blocks] == ["faq", "banner"]
    assert skipped == ["legacyWidget"]


def test_faq_defaults():
    block = build_block_registry().get("faq")({})
    assert isinstance(block, RenderedBlock)
    assert block.component == "FAQBlock"
    assert block.props["title"] == "Frequently Asked Questions"
    assert block.props["layout"] == "accordion"
    assert block.props["faqs"] == []


def test_slider_slides_are_normalized():
    block = build_block_registry().get("simpleSlider")({
        "slides": [
            {"title": "One", "backgroundImage": {"url": "/media/one.webp"}},
            {"title": "Two", "backgroundImageUrl": "https://cdn.example.com/two.webp", "textPosition": "left"},
        ]
    })
    first, second = block.props["slides"]
    assert first["src"] == "/media/one.webp"
    assert first["priority"] is True
    assert first["textPosition"] == "center"
    assert second["src"] == "https://cdn.example.com/two.webp"
    assert second["priority"] is False
    assert second["textPosition"] == "left"


def test_nested_blocks_are_composed_by_their_renderer():
    registry = build_block_registry()
    block = registry.get("contentSection")({
        "heading": "Why us",
        "blocks": [
            {"blockType": "cta", "richText": "Talk to a counselor"},
            {"blockType": "notRegistered"},
            {"blockType": "contentSection", "blocks": [{"blockType": "banner", "content": "Deep"}]},
        ],
    })

    children = block.props["children"]
    assert [child["block_type"] for child in children] == ["cta", "contentSection"]
    assert children[1]["props"]["children"][0]["props"]["content"] == "Deep"


def test_registry_covers_site_blocks():
    registry = build_block_registry()
    for name in (
        "banner", "content", "cta", "mediaBlock", "archive", "faq", "testimonials", "photoGallery",
        "simpleSlider", "basicSlider", "quoteCarousel", "universities", "universityGroup",
        "videoModalHero", "journeyWithUs", "contentSection",
    ):
        assert name in registry, name
