from conftest import PASSWORD
from patentflow.core.config import settings
from patentflow.core.errors import InsightTimeout
from patentflow.core.security import create_session_token
from patentflow.main import app
from patentflow.services.insights import InsightProvider, get_insight_provider


def sign_in(client, user):
    client.cookies.set(
        settings.SESSION_COOKIE_NAME,
        create_session_token(user.id, user.email, user.name, user.roles),
    )


def test_protected_pages_redirect_to_login(client):
    for path in ("/", "/search", "/admin", "/task/anything"):
        response = client.get(path, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/login"


def test_login_page_redirects_signed_in_users(client, staff):
    assert client.get("/login").status_code == 200
    sign_in(client, staff["processor"])
    response = client.get("/login", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/"


def test_login_form(client, staff):
    failed = client.post("/login", data={"email": staff["qa"].email, "password": "wrong-one"},
                         follow_redirects=False)
    assert failed.status_code == 401
    assert "Invalid email or password." in failed.text

    response = client.post("/login", data={"email": staff["qa"].email, "password": PASSWORD},
                           follow_redirects=False)
    assert response.status_code == 303
    assert settings.SESSION_COOKIE_NAME in response.cookies


def test_logout_clears_the_session(client, staff):
    sign_in(client, staff["qa"])
    response = client.get("/logout", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/login"
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{settings.SESSION_COOKIE_NAME}=")
    assert "Max-Age=0" in set_cookie


def test_dashboard_shows_the_role_queue(client, staff, assigned, make_project):
    make_project(row_number="PF2400001", **assigned)
    make_project(row_number="PF2400002", workflowStatus="With QA", processing_status="Processed", **assigned)
    sign_in(client, staff["processor"])

    page = client.get("/")
    assert page.status_code == 200
    assert "PF2400001" in page.text
    assert "PF2400002" not in page.text


def test_role_parameter_only_selects_held_roles(client, staff, make_project):
    make_project(row_number="PF2400009")
    sign_in(client, staff["processor"])
    page = client.get("/?role=Admin")
    assert page.status_code == 200
    assert "PF2400009" not in page.text
    assert "Processor dashboard" in page.text


def test_admin_page_is_admin_only(client, staff):
    sign_in(client, staff["manager"])
    assert client.get("/admin", follow_redirects=False).headers["location"] == "/"
    sign_in(client, staff["admin"])
    page = client.get("/admin")
    assert page.status_code == 200
    assert staff["qa"].email in page.text


def test_task_page_submits_a_workflow_action(client, staff, assigned, make_project):
    project = make_project(row_number="PF2400005", **assigned)
    sign_in(client, staff["processor"])

    page = client.get(f"/task/{project.id}")
    assert page.status_code == 200
    assert 'value="submit_for_qa"' in page.text

    response = client.post(
        f"/task/{project.id}",
        data={"action": "submit_for_qa", "processing_status": "Processed"},
    )
    assert response.status_code == 200
    assert "Project updated." in response.text
    assert "With QA" in response.text


def test_task_page_renders_errors_inline(client, staff, assigned, make_project):
    project = make_project(**assigned)
    sign_in(client, staff["processor"])
    response = client.post(
        f"/task/{project.id}",
        data={"action": "submit_for_qa", "processing_status": "On Hold"},
    )
    assert response.status_code == 400
    assert "Choose a processing outcome before submitting for QA." in response.text


def test_task_page_for_an_invisible_project(client, staff, make_project):
    project = make_project()
    sign_in(client, staff["processor"])
    response = client.get(f"/task/{project.id}")
    assert response.status_code == 404
    assert "No such project found" in response.text


def test_manager_reassigns_through_the_task_form(client, session, staff, assigned, make_project):
    project = make_project(**assigned)
    sign_in(client, staff["manager"])

    page = client.get(f"/task/{project.id}")
    assert '<select name="processorId">' in page.text
    assert 'name="processor"' not in page.text
    assert f'value="{staff["other_processor"].id}"' in page.text

    response = client.post(
        f"/task/{project.id}",
        data={
            "action": "save",
            "processorId": staff["other_processor"].id,
            "qaId": staff["qa"].id,
            "caseManagerId": staff["case_manager"].id,
        },
    )
    assert response.status_code == 200
    assert "Project updated." in response.text
    session.refresh(project)
    assert project.processorId == staff["other_processor"].id
    assert project.processor == "Olly Processor"


def test_name_that_disagrees_with_the_id_is_rejected(client, session, staff, assigned, make_project):
    project = make_project(**assigned)
    sign_in(client, staff["manager"])
    response = client.post(
        f"/task/{project.id}",
        data={"action": "save", "processor": "Olly Processor", "processorId": staff["processor"].id},
    )
    assert response.status_code == 400
    assert "Project updated." not in response.text
    session.refresh(project)
    assert project.processor == "Pat Processor"


def test_saving_both_assignees_allocates_the_project(client, session, staff, make_project):
    project = make_project(workflowStatus="Pending Allocation")
    sign_in(client, staff["manager"])
    response = client.post(
        f"/task/{project.id}",
        data={"action": "save", "processorId": staff["processor"].id, "qaId": staff["qa"].id},
    )
    assert response.status_code == 200
    session.refresh(project)
    assert project.workflowStatus == "With Processor"
    assert project.allocation_date is not None


def test_search_page(client, staff, make_project):
    make_project(row_number="PF2400001", client_name="Acme")
    make_project(row_number="PF2400002", client_name="Globex")
    sign_in(client, staff["manager"])
    page = client.get("/search", params={"q": "Glo", "column": "any"})
    assert page.status_code == 200
    assert "PF2400002" in page.text
    assert "PF2400001" not in page.text


class StaticProvider(InsightProvider):
    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error

    def generate(self, system, prompt):
        if self.error:
            raise self.error
        return self.reply


def test_insight_panel_renders_a_chart(client, staff, make_project):
    make_project(client_name="Acme")
    app.dependency_overrides[get_insight_provider] = lambda: StaticProvider(
        '{"responseType": "chart", "data": [{"name": "Acme", "value": 4}]}'
    )
    sign_in(client, staff["manager"])
    response = client.get("/", params={"ask": "Projects per client?"})
    assert response.status_code == 200
    assert 'class="chart"' in response.text
    assert "Acme" in response.text


def test_insight_failure_stays_inside_the_panel(client, staff):
    app.dependency_overrides[get_insight_provider] = lambda: StaticProvider(
        error=InsightTimeout("The AI service timed out. Please try again.")
    )
    sign_in(client, staff["manager"])
    response = client.get("/", params={"ask": "Anything?"})
    assert response.status_code == 200
    assert "The AI service timed out. Please try again." in response.text


def test_processors_never_reach_the_insight_model(client, staff):
    app.dependency_overrides[get_insight_provider] = lambda: StaticProvider(error=AssertionError("called"))
    sign_in(client, staff["processor"])
    response = client.get("/", params={"ask": "Anything?"})
    assert response.status_code == 200
    assert "Ask about projects" not in response.text
