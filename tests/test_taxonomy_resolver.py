import pytest

from coaching_portal.errors import BackendUnavailable, InvalidTransition, NotFound
from coaching_portal.models import Selections
from coaching_portal.services.taxonomy_service import FirestoreListing, TaxonomyResolver
from doubles import FailingDB, FakeDB, portal_data


def _sel(*keys):
    return Selections.from_keys(keys)


MATH_MOCK = ("alpha", "class-9", "mathematics", "mock-test")


def test_coachings_and_classes_use_record_labels_with_catalogue_fallback(resolver, student_session):
    coachings = resolver.list_children("coachings", _sel(), student_session)
    assert [entry.id for entry in coachings] == ["alpha", "beta"]
    assert coachings[0].label == "Alpha Coaching"

    classes = resolver.list_children("classes", _sel("alpha"), student_session)
    assert [(entry.id, entry.label) for entry in classes] == [("class-9", "Class IX"), ("class-10", "Class X")]
    assert classes[1].icon == "📗"


def test_subjects_are_filtered_and_keep_insertion_order(resolver, student_session, full_session):
    visible = resolver.list_children("subjects", _sel("alpha", "class-9"), student_session)
    assert [entry.id for entry in visible] == ["mathematics"]
    assert visible[0].label == "Mathematics"
    assert visible[0].icon == "🔢"

    everything = resolver.list_children("subjects", _sel("alpha", "class-9"), full_session)
    assert [entry.id for entry in everything] == ["mathematics", "physics", "english"]


def test_types_fall_back_to_catalogue_defaults_only_without_records(resolver, full_session):
    defaults = resolver.list_children("types", _sel("alpha", "class-9", "mathematics"), full_session)
    assert [entry.id for entry in defaults] == ["mock-test", "assignments"]

    stored = resolver.list_children("types", _sel("alpha", "class-10", "chemistry"), full_session)
    assert [entry.id for entry in stored] == ["olympiad"]


def test_chapters_sorted_by_serial_number(resolver, full_session):
    chapters = resolver.list_children("chapters", _sel(*MATH_MOCK), full_session)

    assert [entry.serial_number for entry in chapters] == [1, 2, 3]
    assert [entry.id for entry in chapters] == ["ch-1", "ch-2", "ch-3"]
    assert chapters[0].to_dict()["serialNumber"] == 1


def test_chapter_sort_is_stable_for_equal_serial_numbers(catalogue, full_session):
    data = portal_data()
    data["chapters"] = {
        "first": {"coachingId": "alpha", "classId": "class-9", "subjectName": "mathematics", "testtypeName": "mock-test", "serialNo": 2, "name": "First"},
        "second": {"coachingId": "alpha", "classId": "class-9", "subjectName": "mathematics", "testtypeName": "mock-test", "serialNo": 1, "name": "Second"},
        "third": {"coachingId": "alpha", "classId": "class-9", "subjectName": "mathematics", "testtypeName": "mock-test", "serialNo": 2, "name": "Third"},
        "unnumbered": {"coachingId": "alpha", "classId": "class-9", "subjectName": "mathematics", "testtypeName": "mock-test", "name": "Appendix"},
    }
    resolver = TaxonomyResolver(FirestoreListing(FakeDB(data)), catalogue)

    chapters = resolver.list_children("chapters", _sel(*MATH_MOCK), full_session)

    assert [entry.id for entry in chapters] == ["second", "first", "third", "unnumbered"]
    assert "serialNumber" not in chapters[-1].to_dict()


def test_empty_chapter_listing_is_not_an_error(catalogue, full_session):
    data = portal_data()
    data["chapters"] = {}
    resolver = TaxonomyResolver(FirestoreListing(FakeDB(data)), catalogue)

    assert resolver.list_children("chapters", _sel(*MATH_MOCK), full_session) == []


def test_pdfs_match_all_keys_and_sort_by_serial(resolver, full_session):
    pdfs = resolver.list_children("pdfs", _sel(*MATH_MOCK, "ch-1"), full_session)

    assert [entry.id for entry in pdfs] == ["pdf-a", "pdf-b", "pdf-no-link"]
    assert pdfs[0].label == "Worksheet A"
    assert pdfs[0].icon == "📄"


@pytest.mark.parametrize(
    "level, keys",
    [
        ("classes", ("missing",)),
        ("subjects", ("alpha", "neet")),
        ("types", ("alpha", "class-9", "biology")),
        ("chapters", ("alpha", "class-9", "mathematics", "unknown-type")),
        ("pdfs", ("alpha", "class-9", "mathematics", "mock-test", "ph-1")),
    ],
)
def test_missing_parent_raises_not_found(resolver, full_session, level, keys):
    with pytest.raises(NotFound):
        resolver.list_children(level, _sel(*keys), full_session)


def test_listing_requires_exact_parent_depth(resolver, full_session):
    with pytest.raises(InvalidTransition):
        resolver.list_children("chapters", _sel("alpha", "class-9"), full_session)
    with pytest.raises(InvalidTransition):
        resolver.list_children("semesters", _sel(), full_session)


def test_describe_returns_unfiltered_entry(resolver):
    entry = resolver.describe("subjects", _sel("alpha", "class-9"), "physics")
    assert entry.label == "Physics"

    with pytest.raises(NotFound):
        resolver.describe("subjects", _sel("alpha", "class-9"), "geography")


def test_content_item_reads_pdf_record(resolver):
    item = resolver.content_item("pdf-a")
    assert item.display_name == "Worksheet A"
    assert item.storage_locator == "https://cdn.example.test/a.pdf"
    assert (item.class_id, item.subject_id, item.type_id, item.chapter_key) == ("class-9", "mathematics", "mock-test", "ch-1")

    with pytest.raises(NotFound):
        resolver.content_item("nope")


def test_backend_failures_become_backend_unavailable(catalogue, full_session):
    resolver = TaxonomyResolver(FirestoreListing(FailingDB()), catalogue)
    with pytest.raises(BackendUnavailable):
        resolver.list_children("coachings", _sel(), full_session)

    offline = TaxonomyResolver(FirestoreListing(None), catalogue)
    with pytest.raises(BackendUnavailable):
        offline.content_item("pdf-a")
