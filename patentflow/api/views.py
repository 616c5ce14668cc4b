"""
HTML views (Jinja2 templates).

Every page re-derives the identity from the session cookie; a missing or
expired session redirects to /login. Service errors are rendered on the page.
"""
import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlmodel import Session

from patentflow.api import deps
from patentflow.core.config import settings
from patentflow.core.errors import PatentFlowError, RecordNotFound
from patentflow.core.security import create_session_token
from patentflow.db.session import get_db
from patentflow.models.metadata import METADATA_KINDS
from patentflow.models.project import PROCESSES, ProcessingStatus, QAStatus
from patentflow.models.user import ROLE_PRECEDENCE, Role
from patentflow.schemas.project import ProjectQuery, ProjectUpdate, ProjectUpdateRequest, SubmitAction
from patentflow.schemas.user import UserCreate
from patentflow.services import metadata as metadata_service
from patentflow.services import projects as project_service
from patentflow.services import users as user_service
from patentflow.services import workflow
from patentflow.services.export import DEFAULT_EXPORT_COLUMNS, header_label
from patentflow.services.insights import InsightProvider, ask_project_insights, get_insight_provider

logger = logging.getLogger(__name__)

router = APIRouter()

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))
templates.env.globals["header_label"] = header_label
templates.env.globals["project_name"] = settings.PROJECT_NAME

# Fields submitted as selects; a blank one means "unchanged"
ENUM_FIELDS = {"processing_status", "qa_status", "workflowStatus"}

# Assignee id field -> (name field it drives, role its users must hold)
ASSIGNEE_SELECTS = {
    "processorId": ("processor", Role.PROCESSOR),
    "qaId": ("qa", Role.QA),
    "caseManagerId": ("case_manager", Role.CASE_MANAGER),
}


def _login_redirect() -> RedirectResponse:
    return RedirectResponse(url="/login", status_code=status.HTTP_303_SEE_OTHER)


def _base_context(user, active_role: Optional[Role] = None) -> dict:
    return {
        "current_user": user,
        "active_role": active_role or (user.highest_role if user else None),
        "version": settings.VERSION,
    }


@router.get("/login", include_in_schema=False)
def login_page(request: Request):
    if deps.session_from_request(request):
        return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)
    return templates.TemplateResponse(request, "login.html", {"error": None, "email": ""})


@router.post("/login", include_in_schema=False)
def login_submit(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
):
    try:
        user = user_service.authenticate(db, email, password)
    except PatentFlowError as exc:
        return templates.TemplateResponse(
            request, "login.html", {"error": exc.message, "email": email},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    response = RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)
    deps.set_session_cookie(response, create_session_token(user.id, user.email, user.name, user.roles))
    logger.info("User %s logged in", user.email, extra={"user_id": user.id})
    return response


@router.get("/logout", include_in_schema=False)
def logout():
    response = _login_redirect()
    deps.clear_session_cookie(response)
    return response


@router.get("/", include_in_schema=False)
def dashboard(
    request: Request,
    role: Optional[str] = None,
    client_name: Optional[str] = None,
    process: Optional[str] = None,
    page: int = 1,
    sort_key: Optional[str] = None,
    sort_direction: str = "desc",
    ask: Optional[str] = None,
    db: Session = Depends(get_db),
    provider: InsightProvider = Depends(get_insight_provider),
):
    """The active role's queue, plus the insight panel for managers and admins."""
    user = deps.session_from_request(request)
    if not user:
        return _login_redirect()
    active_role = user.active_role(role)

    context = _base_context(user, active_role)
    context.update({
        "roles": [r for r in ROLE_PRECEDENCE if r in user.roles],
        "columns": DEFAULT_EXPORT_COLUMNS,
        "processes": PROCESSES,
        "client_name": client_name or "all",
        "process": process or "all",
        "clients": [],
        "page": None,
        "error": None,
        "ask": ask or "",
        "insight": None,
        "insight_error": None,
    })
    if ask and user.is_privileged:
        # Failures stay inside the insight panel
        try:
            context["insight"] = ask_project_insights(db, ask, provider)
        except PatentFlowError as exc:
            context["insight_error"] = exc.message
    try:
        query = ProjectQuery(
            page=max(page, 1),
            sort_key=sort_key,
            sort_direction="asc" if sort_direction == "asc" else "desc",
            client_name=client_name,
            process=process,
            queue=True,
            role=active_role.value,
        )
        context["page"] = project_service.list_projects(db, query, user)
        if user.is_privileged:
            context["clients"] = [item.name for item in metadata_service.list_items(db, "clients")]
    except PatentFlowError as exc:
        context["error"] = exc.message
    return templates.TemplateResponse(request, "dashboard.html", context)


@router.get("/search", include_in_schema=False)
def search_page(
    request: Request,
    q: Optional[str] = None,
    column: str = "any",
    page: int = 1,
    db: Session = Depends(get_db),
):
    """Filtered list over everything the viewer may see, without the queue stage."""
    user = deps.session_from_request(request)
    if not user:
        return _login_redirect()

    context = _base_context(user)
    context.update({
        "q": q or "",
        "column": column,
        "search_columns": ["any"] + DEFAULT_EXPORT_COLUMNS,
        "columns": DEFAULT_EXPORT_COLUMNS,
        "page": None,
        "error": None,
    })
    try:
        query = ProjectQuery(page=max(page, 1), quick_search=q, search_column=column)
        context["page"] = project_service.list_projects(db, query, user)
    except PatentFlowError as exc:
        context["error"] = exc.message
    return templates.TemplateResponse(request, "search.html", context)


def _assignee_options(db: Session, project, actions: dict) -> dict:
    """
    One user select per assignee the form may change. The select posts the
    user id only; the name follows from it on save.
    """
    editable = set().union(*actions.values()) if actions else set()
    options = {}
    for id_field, (name_field, role) in ASSIGNEE_SELECTS.items():
        if id_field not in editable:
            continue
        users = [(u.id, u.name) for u in user_service.list_users(db, role)]
        current = getattr(project, id_field)
        if current and current not in {user_id for user_id, _ in users}:
            users.append((current, getattr(project, name_field) or current))
        options[id_field] = {"name_field": name_field, "label": header_label(name_field), "users": users}
    return options


def _task_context(db: Session, user, project_id: str) -> dict:
    context = _base_context(user)
    context.update({"project": None, "actions": {}, "error": None, "message": None})
    project = project_service.get_project(db, project_id, user)
    context["project"] = project_service.to_read(project)
    context["actions"] = {
        action.value: sorted(fields)
        for action, fields in workflow.available_actions(project, user).items()
    }
    context["processing_statuses"] = [s.value for s in ProcessingStatus]
    context["qa_statuses"] = [s.value for s in QAStatus]
    context["assignees"] = _assignee_options(db, project, context["actions"])
    return context


@router.get("/task/{project_id}", include_in_schema=False)
def task_page(request: Request, project_id: str, db: Session = Depends(get_db)):
    user = deps.session_from_request(request)
    if not user:
        return _login_redirect()
    try:
        context = _task_context(db, user, project_id)
    except RecordNotFound as exc:
        context = _base_context(user)
        context.update({"project": None, "actions": {}, "error": exc.message, "message": None})
        return templates.TemplateResponse(request, "task.html", context, status_code=status.HTTP_404_NOT_FOUND)
    return templates.TemplateResponse(request, "task.html", context)


@router.post("/task/{project_id}", include_in_schema=False)
async def task_submit(request: Request, project_id: str, db: Session = Depends(get_db)):
    """Apply the submitted form as a workflow action and re-render the task."""
    user = deps.session_from_request(request)
    if not user:
        return _login_redirect()

    form = await request.form()
    error = None
    message = None
    try:
        action = SubmitAction(form.get("action", SubmitAction.SAVE.value))
        # Empty inputs clear the field
        changes = {
            key: (value or None) for key, value in form.items()
            if key in ProjectUpdate.model_fields and not (key in ENUM_FIELDS and value == "")
        }
        request_in = ProjectUpdateRequest(action=action, changes=ProjectUpdate(**changes))
        project_service.update_project(db, project_id, request_in, user)
        message = "Project updated."
    except PatentFlowError as exc:
        error = exc.message
    except (ValueError, ValidationError) as exc:
        error = f"Invalid form data: {exc}"

    try:
        context = _task_context(db, user, project_id)
    except RecordNotFound as exc:
        context = _base_context(user)
        context.update({"project": None, "actions": {}})
        error = exc.message
    context.update({"error": error, "message": message})
    status_code = status.HTTP_200_OK if error is None else status.HTTP_400_BAD_REQUEST
    return templates.TemplateResponse(request, "task.html", context, status_code=status_code)


def _admin_context(db: Session, user) -> dict:
    context = _base_context(user)
    context.update({
        "users": user_service.list_users(db),
        "all_roles": [role.value for role in Role],
        "metadata": {kind: metadata_service.list_items(db, kind) for kind in METADATA_KINDS},
        "error": None,
        "message": None,
    })
    return context


@router.get("/admin", include_in_schema=False)
def admin_page(request: Request, db: Session = Depends(get_db)):
    """Users and metadata lists; admins only."""
    user = deps.session_from_request(request)
    if not user:
        return _login_redirect()
    if not user.is_admin:
        return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)
    return templates.TemplateResponse(request, "admin.html", _admin_context(db, user))


@router.post("/admin/users", include_in_schema=False)
async def admin_create_user(request: Request, db: Session = Depends(get_db)):
    user = deps.session_from_request(request)
    if not user:
        return _login_redirect()
    if not user.is_admin:
        return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)

    form = await request.form()
    error = message = None
    try:
        user_in = UserCreate(
            email=form.get("email", ""),
            name=form.get("name", ""),
            password=form.get("password", ""),
            roles=form.getlist("roles"),
        )
        created = user_service.create_user(db, user_in)
        message = f"User {created.email} created."
    except PatentFlowError as exc:
        error = exc.message
    except ValidationError as exc:
        error = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors())

    context = _admin_context(db, user)
    context.update({"error": error, "message": message})
    return templates.TemplateResponse(request, "admin.html", context)


@router.post("/admin/metadata/{kind}", include_in_schema=False)
def admin_add_metadata(
    request: Request,
    kind: str,
    name: str = Form(""),
    db: Session = Depends(get_db),
):
    user = deps.session_from_request(request)
    if not user:
        return _login_redirect()
    if not user.is_admin:
        return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)

    error = message = None
    try:
        item = metadata_service.add_item(db, kind, name)
        message = f'Added "{item.name}".'
    except PatentFlowError as exc:
        error = exc.message

    context = _admin_context(db, user)
    context.update({"error": error, "message": message})
    return templates.TemplateResponse(request, "admin.html", context)
