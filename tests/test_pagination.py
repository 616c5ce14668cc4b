import pytest

from patentflow.core.errors import ValidationFailed
from patentflow.models.project import Project
from patentflow.services.pagination import fetch_all, paginate


@pytest.fixture
def forty_five(make_project):
    return [make_project(row_number=f"PF24{n:05d}", client_name=f"Client {n % 4}") for n in range(1, 46)]


def test_pages_split_the_result_without_overlap(session, forty_five):
    pages = [paginate(session, [], None, "desc", page, 20) for page in (1, 2, 3)]

    assert [len(page.records) for page in pages] == [20, 20, 5]
    assert all(page.total_count == 45 and page.total_pages == 3 for page in pages)

    row_numbers = [project.row_number for page in pages for project in page.records]
    assert len(set(row_numbers)) == 45
    assert row_numbers == sorted(row_numbers, reverse=True)


def test_page_past_the_end_is_empty(session, forty_five):
    page = paginate(session, [], None, "desc", 4, 20)
    assert page.records == []
    assert page.total_count == 45


def test_ascending_sort(session, forty_five):
    page = paginate(session, [], "row_number", "asc", 3, 20)
    assert [project.row_number for project in page.records] == [f"PF24{n:05d}" for n in range(41, 46)]


def test_ties_in_the_sort_key_are_broken_by_id(session, forty_five):
    pages = [paginate(session, [], "client_name", "asc", page, 7) for page in range(1, 8)]
    ids = [project.id for page in pages for project in page.records]
    assert len(ids) == 45
    assert len(set(ids)) == 45


def test_null_sort_values_are_paged_through(session, make_project):
    for n in range(1, 11):
        make_project(row_number=f"PF24{n:05d}", ref_number=None if n % 3 else f"R{n}")

    for direction in ("asc", "desc"):
        pages = [paginate(session, [], "ref_number", direction, page, 3) for page in range(1, 5)]
        ids = [project.id for page in pages for project in page.records]
        assert len(ids) == 10
        assert len(set(ids)) == 10


def test_filtered_count(session, forty_five):
    page = paginate(session, [Project.client_name == "Client 1"], None, "desc", 1, 20)
    assert page.total_count == 12
    assert all(project.client_name == "Client 1" for project in page.records)


def test_empty_result(session):
    page = paginate(session, [], None, "desc", 1, 20)
    assert page.records == []
    assert page.total_count == 0
    assert page.total_pages == 0


def test_invalid_sort_key_is_rejected(session):
    with pytest.raises(ValidationFailed):
        paginate(session, [], "password", "desc", 1, 20)


def test_fetch_all_returns_every_match_in_order(session, forty_five):
    projects = fetch_all(session, [], "row_number", "asc")
    assert len(projects) == 45
    assert projects[0].row_number == "PF2400001"
