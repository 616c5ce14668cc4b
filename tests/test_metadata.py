import pytest

from patentflow.core.errors import RecordNotFound, ValidationFailed
from patentflow.services import metadata as service


def test_add_rename_delete(session):
    item = service.add_item(session, "countries", "  Germany ")
    assert item.name == "Germany"

    renamed = service.update_item(session, "countries", item.id, "Deutschland")
    assert renamed.name == "Deutschland"

    service.delete_item(session, "countries", item.id)
    assert service.list_items(session, "countries") == []


def test_blank_and_duplicate_names_are_rejected(session):
    service.add_item(session, "clients", "Acme")
    with pytest.raises(ValidationFailed):
        service.add_item(session, "clients", "   ")
    with pytest.raises(ValidationFailed):
        service.add_item(session, "clients", "Acme")
    # Same name in a different list is fine
    service.add_item(session, "renewal-agents", "Acme")


def test_rename_onto_an_existing_name_is_rejected(session):
    service.add_item(session, "processes", "Patent")
    tm = service.add_item(session, "processes", "TM")
    with pytest.raises(ValidationFailed):
        service.update_item(session, "processes", tm.id, "Patent")


def test_unknown_kind_and_item(session):
    with pytest.raises(RecordNotFound):
        service.list_items(session, "planets")
    with pytest.raises(RecordNotFound):
        service.delete_item(session, "clients", "missing")


def test_items_are_listed_by_name(session):
    for name in ("Zeta", "Alpha", "Mu"):
        service.add_item(session, "document-types", name)
    assert [item.name for item in service.list_items(session, "document-types")] == ["Alpha", "Mu", "Zeta"]


def test_seed_from_projects_is_idempotent(session, make_project):
    make_project(client_name="Acme", country="DE", process="Patent")
    make_project(client_name="Acme", country="FR", process="TM")
    make_project(client_name=" ", country=None, process="Patent")
    service.add_item(session, "countries", "DE")

    added = service.seed_from_projects(session)
    assert added == {
        "clients": 1,
        "processes": 2,
        "countries": 1,
        "document-types": 0,
        "renewal-agents": 0,
    }
    assert [item.name for item in service.list_items(session, "countries")] == ["DE", "FR"]

    assert set(service.seed_from_projects(session).values()) == {0}
