import pytest

from schemas.query import CoursesQueryParams, UniversitiesQueryParams
from services.block_renderers import build_block_registry
from services.content_source import LocalContentSource
from services.course_service import CourseService, category_id
from services.page_service import PageService
from services.post_service import PostService
from services.query_cache import QueryCache, RetryPolicy
from services.university_service import UniversityService


COURSES = [
    {"id": 1, "slug": "ielts-preparation", "title": "IELTS Preparation Course", "category": "Language Proficiency", "rating": 4.8},
    {"id": 2, "slug": "toefl-mastery", "title": "TOEFL Mastery Program", "category": "Language Proficiency", "rating": 4.9},
    {"id": 3, "slug": "sat-preparation", "title": "SAT Preparation Course", "category": "Test Preparation", "rating": 4.7},
    {"id": 4, "slug": "gre-advanced", "title": "GRE Advanced Preparation", "category": "Graduate Tests", "rating": 4.6},
    {"id": 5, "slug": "japanese-language", "title": "Japanese Language Course", "category": "Language Learning", "rating": 4.8},
    {"id": 6, "slug": "study-abroad-counseling", "title": "Study Abroad Counseling", "category": "Counseling", "rating": 4.9},
]

UNIVERSITIES = [
    {"id": 1, "slug": "melbourne", "name": "University of Melbourne", "country": "Australia", "featured": True, "ranking": 14},
    {"id": 2, "slug": "toronto", "name": "University of Toronto", "country": "Canada", "featured": True, "ranking": 21},
    {"id": 3, "slug": "kyoto", "name": "Kyoto University", "country": "Japan", "ranking": 46},
    {"id": 4, "slug": "auckland", "name": "University of Auckland", "country": "New Zealand", "featured": True, "status": "inactive"},
]

POSTS = [
    {
        "id": 1,
        "slug": "ielts-vs-toefl",
        "title": "IELTS vs TOEFL",
        "categories": [{"id": "test-prep", "title": "Test Prep"}],
        "layout": [{"blockType": "faq", "faqs": []}, {"blockType": "legacyWidget"}],
    },
]

PAGES = [{"id": 1, "slug": "home", "title": "Home", "layout": [{"blockType": "banner", "content": "Welcome"}]}]


class CountingSource(LocalContentSource):
    """Local source that counts calls so tests can tell cache hits from fetches."""

    def __init__(self, **collections):
        super().__init__(collections=collections)
        self.calls = 0

    async def fetch_collection(self, kind, params):
        self.calls += 1
        return await super().fetch_collection(kind, params)

    async def fetch_by_slug(self, kind, slug):
        self.calls += 1
        return await super().fetch_by_slug(kind, slug)

    async def fetch_all(self, kind):
        self.calls += 1
        return await super().fetch_all(kind)


def make_cache():
    return QueryCache(retry_policy=RetryPolicy(retries=0, base_delay=0, timeout=5))


@pytest.mark.asyncio
async def test_course_list_is_cached_per_params():
    source = CountingSource(courses=COURSES)
    service = CourseService(source, make_cache())

    first = await service.list_courses(CoursesQueryParams(category="Language Proficiency"))
    again = await service.list_courses(CoursesQueryParams(category="Language Proficiency"))
    other = await service.list_courses(CoursesQueryParams(category="Counseling"))

    assert [c.id for c in first.items] == [1, 2]
    assert again is first
    assert [c.id for c in other.items] == [6]
    assert source.calls == 2


@pytest.mark.asyncio
async def test_course_categories_start_with_all_courses():
    service = CourseService(CountingSource(courses=COURSES), make_cache())

    categories = await service.get_categories()

    assert categories[0].name == "All Courses"
    assert categories[0].count == 6
    by_name = {c.name: c for c in categories}
    assert by_name["Language Proficiency"].count == 2
    assert by_name["Language Proficiency"].id == "language-proficiency"
    assert category_id("Graduate  Tests") == "graduate-tests"


@pytest.mark.asyncio
async def test_featured_courses_are_top_rated_with_stable_ties():
    service = CourseService(CountingSource(courses=COURSES), make_cache())
    featured = await service.get_featured(limit=3)
    assert [c.id for c in featured] == [2, 6, 1]


@pytest.mark.asyncio
async def test_related_courses_prefer_same_category_then_fill():
    service = CourseService(CountingSource(courses=COURSES), make_cache())

    related = await service.get_related(1, limit=3)
    assert [c.id for c in related] == [2, 3, 4]

    assert await service.get_related(999) == []


@pytest.mark.asyncio
async def test_invalidating_course_lists_refreshes_on_next_read():
    source = CountingSource(courses=COURSES)
    cache = make_cache()
    service = CourseService(source, cache)
    await service.list_courses()
    await service.get_course("ielts-preparation")

    assert service.invalidate_lists() == 1
    assert cache.get_entry(service.keys.detail("ielts-preparation")).invalidated is False
    assert service.invalidate_all() == 2


@pytest.mark.asyncio
async def test_university_featured_and_stats_use_active_records():
    service = UniversityService(CountingSource(universities=UNIVERSITIES), make_cache())

    featured = await service.get_featured()
    assert [u.slug for u in featured] == ["toronto", "melbourne"]

    stats = await service.get_stats()
    assert stats.total_universities == 3
    assert stats.featured_universities == 2
    assert stats.total_countries == 3

    listing = await service.list_universities()
    assert [u.name for u in listing.items] == ["Kyoto University", "University of Melbourne", "University of Toronto"]


@pytest.mark.asyncio
async def test_university_pages_can_be_walked():
    service = UniversityService(CountingSource(universities=UNIVERSITIES), make_cache())
    params = UniversitiesQueryParams(limit=1)

    pages = [page async for page in service.iter_pages(params)]
    assert [p.page for p in pages] == [1, 2, 3]
    assert pages[-1].has_next_page is False

    first_two = await service.infinite_pages(params.with_page(3), max_pages=2)
    assert [p.page for p in first_two] == [1, 2]


@pytest.mark.asyncio
async def test_post_layout_is_composed_on_read():
    service = PostService(CountingSource(posts=POSTS), make_cache(), build_block_registry())

    document = await service.get_post("ielts-vs-toefl")

    assert [b.block_type for b in document.blocks] == ["faq"]
    assert document.skipped_block_types == ["legacyWidget"]
    assert document.categories[0].id == "test-prep"
    assert await service.get_post("missing") is None

    listing = await service.list_posts()
    assert listing.total == 1


@pytest.mark.asyncio
async def test_page_layout_is_composed_on_read():
    service = PageService(CountingSource(pages=PAGES), make_cache(), build_block_registry())
    document = await service.get_page("home")
    assert document.blocks[0].component == "BannerBlock"
    assert document.meta is None


@pytest.mark.asyncio
async def test_next_page_is_warmed_in_background():
    source = CountingSource(courses=COURSES)
    cache = make_cache()
    service = CourseService(source, cache)
    params = CoursesQueryParams(limit=4)

    first = await service.list_courses(params)
    task = service.schedule_next_page(params, first)
    await task

    assert cache.get_cached(service.keys.list(params.with_page(2))) is not None
    calls = source.calls
    second = await service.list_courses(params.with_page(2))
    assert [c.id for c in second.items] == [5, 6]
    assert source.calls == calls
    assert service.schedule_next_page(params.with_page(2), second) is None


@pytest.mark.asyncio
async def test_status_filter_off_is_cached_apart_from_default():
    source = CountingSource(universities=UNIVERSITIES)
    service = UniversityService(source, make_cache())

    active = await service.list_universities(UniversitiesQueryParams())
    everything = await service.list_universities(UniversitiesQueryParams(status=None))

    assert active.total == 3
    assert everything.total == 4
    assert source.calls == 2
