import csv
import io

import pytest

from conftest import PASSWORD
from patentflow.core.config import settings
from patentflow.core.errors import InsightTimeout
from patentflow.main import app
from patentflow.services.insights import InsightProvider, get_insight_provider

API = settings.API_V1_STR


class FakeProvider(InsightProvider):
    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def generate(self, system, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def use_provider():
    def _use(provider):
        app.dependency_overrides[get_insight_provider] = lambda: provider
        return provider
    return _use


def test_health(client):
    response = client.get(f"{API}/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_login_sets_session_cookie(client, staff):
    response = client.post(
        f"{API}/auth/login",
        data={"username": staff["processor"].email, "password": PASSWORD},
    )
    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"
    assert settings.SESSION_COOKIE_NAME in response.cookies

    me = client.get(f"{API}/auth/me")
    assert me.status_code == 200
    assert me.json()["roles"] == ["Processor"]


def test_login_failure_does_not_say_why(client, staff):
    wrong_password = client.post(
        f"{API}/auth/login", data={"username": staff["processor"].email, "password": "nope-nope"}
    )
    unknown_user = client.post(
        f"{API}/auth/login", data={"username": "ghost@example.com", "password": "nope-nope"}
    )
    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json()["detail"] == unknown_user.json()["detail"]


def test_requests_without_a_session_are_rejected(client):
    assert client.get(f"{API}/projects").status_code == 401
    assert client.get(f"{API}/projects", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_processor_lists_only_own_projects(client, staff, assigned, make_project, auth_headers):
    mine = make_project(**assigned)
    make_project()

    response = client.get(f"{API}/projects", headers=auth_headers(staff["processor"]))
    assert response.status_code == 200
    body = response.json()
    assert body["total_count"] == 1
    assert [record["id"] for record in body["records"]] == [mine.id]


def test_search_with_advanced_criteria(client, staff, make_project, auth_headers):
    make_project(client_name="Acme Corp")
    make_project(client_name="Globex")
    response = client.post(
        f"{API}/projects/search",
        json={"advanced": [{"field": "client_name", "operator": "startsWith", "value": "Acme"}]},
        headers=auth_headers(staff["manager"]),
    )
    assert response.status_code == 200
    assert [r["client_name"] for r in response.json()["records"]] == ["Acme Corp"]


def test_invalid_search_field_maps_to_422(client, staff, auth_headers):
    response = client.post(
        f"{API}/projects/search",
        json={"advanced": [{"field": "nope", "operator": "equals", "value": "x"}]},
        headers=auth_headers(staff["manager"]),
    )
    assert response.status_code == 422
    assert response.json() == {"detail": "Unknown search field: nope", "field": "nope", "retryable": False}


def test_invisible_project_is_404(client, staff, make_project, auth_headers):
    project = make_project()
    response = client.get(f"{API}/projects/{project.id}", headers=auth_headers(staff["processor"]))
    assert response.status_code == 404


def test_patch_runs_the_workflow(client, staff, assigned, make_project, auth_headers):
    project = make_project(**assigned)
    response = client.patch(
        f"{API}/projects/{project.id}",
        json={"action": "submit_for_qa", "changes": {"processing_status": "NTP"}},
        headers=auth_headers(staff["processor"]),
    )
    assert response.status_code == 200
    assert response.json()["workflowStatus"] == "With QA"

    # Now it is with QA; the processor can no longer submit it
    again = client.patch(
        f"{API}/projects/{project.id}",
        json={"action": "submit_for_qa", "changes": {"processing_status": "NTP"}},
        headers=auth_headers(staff["processor"]),
    )
    assert again.status_code == 403


def test_bulk_endpoints_are_manager_only(client, staff, make_project, auth_headers):
    project = make_project()
    body = {"project_ids": [project.id], "field": "client_name", "value": "Acme"}
    assert client.post(f"{API}/projects/bulk-update", json=body,
                       headers=auth_headers(staff["processor"])).status_code == 403
    response = client.post(f"{API}/projects/bulk-update", json=body, headers=auth_headers(staff["manager"]))
    assert response.status_code == 200
    assert response.json() == {"updated_count": 1}


def test_add_rows_endpoint(client, staff, make_project, auth_headers):
    source = make_project(client_name="Acme")
    response = client.post(
        f"{API}/projects/add-rows",
        json={"source_project_id": source.id, "fields_to_copy": ["client_name"], "count": 2},
        headers=auth_headers(staff["manager"]),
    )
    assert response.status_code == 200
    assert response.json()["added_count"] == 2


def test_export_csv(client, staff, make_project, auth_headers):
    make_project(row_number="PF2400001", client_name="Acme")
    make_project(row_number="PF2400002", client_name="Globex")
    response = client.post(
        f"{API}/projects/export",
        json={"columns": ["row_number", "client_name"], "sort_direction": "asc"},
        headers=auth_headers(staff["manager"]),
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "projects_export_" in response.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows == [["Row Number", "Client Name"], ["PF2400001", "Acme"], ["PF2400002", "Globex"]]


def test_insights_text_answer(client, staff, make_project, auth_headers, use_provider):
    make_project(client_name="Acme")
    provider = use_provider(FakeProvider('{"responseType": "text", "data": "One project."}'))
    response = client.post(f"{API}/insights", json={"query": "How many?"}, headers=auth_headers(staff["manager"]))
    assert response.status_code == 200
    assert response.json() == {"responseType": "text", "data": "One project."}
    assert "Acme" in provider.prompts[0]


def test_insights_chart_answer(client, staff, auth_headers, use_provider):
    use_provider(FakeProvider('```json\n{"responseType": "chart", "data": [{"name": "Acme", "value": 3}]}\n```'))
    response = client.post(f"{API}/insights", json={"query": "Chart by client"},
                           headers=auth_headers(staff["admin"]))
    assert response.status_code == 200
    assert response.json() == {"responseType": "chart", "data": [{"name": "Acme", "value": 3.0}]}


def test_insights_timeout_is_retryable(client, staff, auth_headers, use_provider):
    use_provider(FakeProvider(error=InsightTimeout("The AI service timed out. Please try again.")))
    response = client.post(f"{API}/insights", json={"query": "?"}, headers=auth_headers(staff["manager"]))
    assert response.status_code == 502
    assert response.json()["retryable"] is True


def test_insights_are_manager_only(client, staff, auth_headers, use_provider):
    use_provider(FakeProvider("{}"))
    response = client.post(f"{API}/insights", json={"query": "?"}, headers=auth_headers(staff["processor"]))
    assert response.status_code == 403


def test_admin_manages_users(client, staff, auth_headers):
    headers = auth_headers(staff["admin"])
    response = client.post(
        f"{API}/users",
        json={"email": "New.Person@Example.com", "name": "New Person", "password": "longenough", "roles": ["QA"]},
        headers=headers,
    )
    assert response.status_code == 200
    created = response.json()
    assert created["email"] == "new.person@example.com"
    assert "password" not in created

    duplicate = client.post(
        f"{API}/users",
        json={"email": "new.person@example.com", "name": "Again", "password": "longenough", "roles": ["QA"]},
        headers=headers,
    )
    assert duplicate.status_code == 422

    renamed = client.patch(f"{API}/users/{created['id']}", json={"name": "Renamed"}, headers=headers)
    assert renamed.json()["name"] == "Renamed"

    assert client.get(f"{API}/users", headers=auth_headers(staff["manager"])).status_code == 403


def test_bulk_user_creation_reports_each_failure(client, staff, auth_headers):
    response = client.post(
        f"{API}/users/bulk",
        json=[
            {"email": "a@example.com", "name": "A", "password": "longenough", "roles": ["Processor"]},
            {"email": staff["qa"].email, "name": "Dup", "password": "longenough", "roles": ["QA"]},
        ],
        headers=auth_headers(staff["admin"]),
    )
    assert response.status_code == 200
    assert response.json() == {
        "added_count": 1,
        "errors": [{"email": staff["qa"].email, "error": "User already exists."}],
    }


def test_metadata_endpoints(client, staff, auth_headers):
    admin = auth_headers(staff["admin"])
    created = client.post(f"{API}/metadata/clients", json={"name": "  Acme "}, headers=admin)
    assert created.status_code == 200
    assert created.json()["name"] == "Acme"

    assert client.post(f"{API}/metadata/clients", json={"name": "Acme"}, headers=admin).status_code == 422
    assert client.post(f"{API}/metadata/clients", json={"name": "X"},
                       headers=auth_headers(staff["processor"])).status_code == 403

    listed = client.get(f"{API}/metadata/clients", headers=auth_headers(staff["processor"]))
    assert [item["name"] for item in listed.json()] == ["Acme"]

    assert client.get(f"{API}/metadata/planets", headers=admin).status_code == 404
    deleted = client.delete(f"{API}/metadata/clients/{created.json()['id']}", headers=admin)
    assert deleted.status_code == 204
