from schemas.course import Course
from schemas.query import CoursesQueryParams, PriceRange, QueryParameters
from services.collections import COURSES, POSTS
from services.query_engine import parse_leading_int, parse_numeric, query, sort_records
from schemas.content import Post


def make_course(course_id: int, **overrides) -> Course:
    data = {
        "id": course_id,
        "slug": f"course-{course_id}",
        "title": f"Course {course_id}",
        "description": "General study skills",
        "duration": "8 weeks",
        "level": "All Levels",
        "price": "NPR 10,000",
        "category": "Counseling",
        "instructor": "Staff",
        "rating": 4.0,
        "studentsEnrolled": 10,
    }
    data.update(overrides)
    return Course.model_validate(data)


def test_pagination_metadata_across_pages():
    courses = [make_course(i) for i in range(1, 15)]

    first = query(courses, CoursesQueryParams(page=1, limit=6), COURSES.query_config)
    assert len(first.items) == 6
    assert first.total_pages == 3
    assert first.has_next_page is True
    assert first.has_prev_page is False

    last = query(courses, CoursesQueryParams(page=3, limit=6), COURSES.query_config)
    assert len(last.items) == 2
    assert last.has_next_page is False
    assert last.has_prev_page is True


def test_pages_concatenate_to_full_result_in_order():
    courses = [make_course(i, rating=float(i % 3)) for i in range(1, 15)]
    params = CoursesQueryParams(limit=4, sort_by="rating", sort_order="desc")

    full = query(courses, params.model_copy(update={"limit": 100}), COURSES.query_config)
    collected = []
    page = 1
    while True:
        result = query(courses, params.with_page(page), COURSES.query_config)
        collected.extend(result.items)
        if not result.has_next_page:
            break
        page += 1

    assert [c.id for c in collected] == [c.id for c in full.items]


def test_search_is_case_insensitive_across_fields():
    courses = [make_course(1, title="IELTS Preparation Course", instructor="Sarah Johnson")] + [make_course(i) for i in range(2, 11)]

    result = query(courses, CoursesQueryParams(search="ielts"), COURSES.query_config)
    assert result.total == 1
    assert result.items[0].title == "IELTS Preparation Course"

    by_instructor = query(courses, CoursesQueryParams(search="STAFF"), COURSES.query_config)
    assert by_instructor.total == 9


def test_sort_by_price_uses_parsed_magnitude():
    courses = [
        make_course(1, price="NPR 25,000"),
        make_course(2, price="NPR 40,000"),
        make_course(3, price="NPR 15,000"),
    ]
    result = query(courses, CoursesQueryParams(sort_by="price", sort_order="desc"), COURSES.query_config)
    assert [c.price for c in result.items] == ["NPR 40,000", "NPR 25,000", "NPR 15,000"]


def test_page_past_the_end_is_empty_not_an_error():
    courses = [make_course(i) for i in range(1, 13)]
    result = query(courses, CoursesQueryParams(page=5, limit=6), COURSES.query_config)
    assert result.items == []
    assert result.has_next_page is False
    assert result.has_prev_page is True
    assert result.total == 12


def test_malformed_pagination_is_normalized():
    courses = [make_course(i) for i in range(1, 20)]
    params = CoursesQueryParams(page="abc", limit="-3")
    assert params.page == 1
    assert params.limit is None

    result = query(courses, params, COURSES.query_config)
    assert result.limit == COURSES.query_config.default_limit
    assert len(result.items) == 12

    zero = query(courses, CoursesQueryParams(limit=0), COURSES.query_config)
    assert zero.limit == 12


def test_empty_collection_yields_zero_pages():
    result = query([], CoursesQueryParams(), COURSES.query_config)
    assert result.items == []
    assert result.total == 0
    assert result.total_pages == 0
    assert result.has_next_page is False
    assert result.has_prev_page is False


def test_filters_are_anded_and_all_courses_disables_category():
    courses = [
        make_course(1, category="Language Proficiency", level="Beginner"),
        make_course(2, category="Language Proficiency", level="Advanced"),
        make_course(3, category="Counseling", level="Beginner"),
    ]
    both = query(courses, CoursesQueryParams(category="Language Proficiency", level="Beginner"), COURSES.query_config)
    assert [c.id for c in both.items] == [1]

    everything = query(courses, CoursesQueryParams(category="All Courses"), COURSES.query_config)
    assert everything.total == 3


def test_filtering_is_idempotent():
    courses = [make_course(i, category="Counseling" if i % 2 else "Test Preparation") for i in range(1, 9)]
    params = CoursesQueryParams(category="Counseling", limit=100)
    once = query(courses, params, COURSES.query_config).items
    twice = query(once, params, COURSES.query_config).items
    assert [c.id for c in once] == [c.id for c in twice]


def test_price_range_is_inclusive():
    courses = [
        make_course(1, price="NPR 15,000"),
        make_course(2, price="NPR 25,000"),
        make_course(3, price="NPR 40,000"),
    ]
    params = CoursesQueryParams(price_range=PriceRange(min=15000, max=25000))
    result = query(courses, params, COURSES.query_config)
    assert [c.id for c in result.items] == [1, 2]


def test_sort_is_stable_for_ties_in_both_directions():
    courses = [make_course(i, rating=4.5) for i in range(1, 6)]
    for order in ("asc", "desc"):
        result = query(courses, CoursesQueryParams(sort_by="rating", sort_order=order), COURSES.query_config)
        assert [c.id for c in result.items] == [1, 2, 3, 4, 5]


def test_duration_sort_uses_leading_number():
    courses = [
        make_course(1, duration="16 weeks"),
        make_course(2, duration="6 months"),
        make_course(3, duration="10 weeks"),
    ]
    result = query(courses, CoursesQueryParams(sort_by="duration"), COURSES.query_config)
    assert [c.id for c in result.items] == [2, 3, 1]


def test_missing_sort_keys_go_last():
    records = [{"title": None}, {"title": "beta"}, {"title": "Alpha"}]
    ordered = sort_records(records, "title", "asc", COURSES.query_config)
    assert [r["title"] for r in ordered] == ["Alpha", "beta", None]


def test_unknown_filter_and_sort_are_ignored():
    courses = [make_course(2), make_course(1)]
    params = QueryParameters(sort_by="nonexistent", filters={"colour": "red"})
    result = query(courses, params, COURSES.query_config)
    assert [c.id for c in result.items] == [2, 1]


def test_post_category_filter_matches_membership():
    posts = [
        Post(id=1, slug="a", title="A", categories=[{"id": "japan", "title": "Japan"}]),
        Post(id=2, slug="b", title="B", categories=[{"id": "test-prep", "title": "Test Prep"}, {"id": "japan", "title": "Japan"}]),
        Post(id=3, slug="c", title="C"),
    ]
    params = POSTS.params_model(category="japan")
    result = query(posts, params, POSTS.query_config)
    assert [p.id for p in result.items] == [1, 2]


def test_numeric_parsing_of_free_text():
    assert parse_numeric("NPR 25,000") == 25000
    assert parse_numeric("no digits") == 0
    assert parse_leading_int("12 weeks") == 12
    assert parse_leading_int("") == 0


def test_price_parsing_skips_commas_before_the_digits():
    assert parse_numeric("Fees, NPR 25,000") == 25000

    courses = [make_course(1, price="Fees, NPR 25,000"), make_course(2, price="NPR 40,000")]
    result = query(courses, CoursesQueryParams(price_range=PriceRange(min=20000, max=30000)), COURSES.query_config)
    assert [c.id for c in result.items] == [1]


def test_blank_filters_are_ignored():
    courses = [make_course(1, category="Counseling", level="Beginner"), make_course(2, category="Test Preparation")]

    params = CoursesQueryParams(category="", level="  ")
    assert params.category is None
    assert params.active_filters() == {}
    assert query(courses, params, COURSES.query_config).total == 2

    extra = CoursesQueryParams(filters={"instructor": ""})
    assert extra.active_filters() == {}
