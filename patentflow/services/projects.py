"""
Project Record Service

CRUD, queries and bulk writes over the projects table. Every write happens
in a single transaction: a bulk insert or bulk update either lands in full
or not at all.
"""
import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from sqlmodel import Session, select

from patentflow.core.config import settings
from patentflow.core.errors import PermissionDenied, RecordNotFound, ValidationFailed
from patentflow.db.guard import store_guard
from patentflow.models.project import (
    DATE_FIELDS,
    Project,
    ProjectEntry,
    ProcessingStatus,
    QAStatus,
    WorkflowStatus,
)
from patentflow.models.user import User
from patentflow.schemas.auth import SessionUser
from patentflow.schemas.project import (
    AddRowsRequest,
    AddRowsResult,
    BulkUpdateRequest,
    BulkUpdateResult,
    ProjectEntryIn,
    ProjectPage,
    ProjectQuery,
    ProjectRead,
    ProjectUpdateRequest,
)
from patentflow.services import workflow
from patentflow.services.filters import build_filter_predicates, parse_day
from patentflow.services.pagination import paginate
from patentflow.services.row_numbers import allocate_row_numbers

logger = logging.getLogger(__name__)

# name column -> id column of the same assignee
ASSIGNEE_PAIRS = {
    "processor": "processorId",
    "qa": "qaId",
    "case_manager": "caseManagerId",
}
ASSIGNEE_FIELDS = frozenset(ASSIGNEE_PAIRS) | frozenset(ASSIGNEE_PAIRS.values())

# Fields "add rows" may copy from a source project
COPYABLE_FIELDS = frozenset({
    "subject_line",
    "client_name",
    "process",
    "processor",
    "qa",
    "case_manager",
    "manager_name",
    "sender",
    "country",
    "document_type",
    "renewal_agent",
    "received_date",
    "allocation_date",
})

# Fields a single bulk update may set
BULK_UPDATABLE_FIELDS = frozenset({
    "processor",
    "processorId",
    "qa",
    "qaId",
    "case_manager",
    "caseManagerId",
    "manager_name",
    "client_name",
    "process",
    "country",
    "document_type",
    "renewal_agent",
    "received_date",
    "allocation_date",
    "reportout_date",
})

# New rows always start fresh in the workflow
NEW_ROW_CONTROLLED_FIELDS = frozenset({
    "row_number", "workflowStatus", "processing_status", "qa_status",
    "processing_date", "qa_date", "client_response_date",
})


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_read(project: Project) -> ProjectRead:
    return ProjectRead.model_validate(project)


def normalise_changes(values: Dict[str, Any]) -> Dict[str, Any]:
    """Enum members become their values, blank strings become None, date strings become dates."""
    normalised = {}
    for field, value in values.items():
        if isinstance(value, Enum):
            value = value.value
        if isinstance(value, str):
            value = value.strip() or None
        if field in DATE_FIELDS and value is not None:
            value = parse_day(value, field)
        normalised[field] = value
    return normalised


def resolve_assignees(db: Session, values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Keep assignee names and ids in step.

    A submitted name fills in the matching user id and vice versa; clearing
    one clears the other. Unknown users, names shared by several users and a
    name that disagrees with the submitted id are all rejected.
    """
    resolved = dict(values)
    for name_field, id_field in ASSIGNEE_PAIRS.items():
        if id_field in values:
            user_id = values[id_field]
            user = None
            if user_id is not None:
                user = db.get(User, user_id)
                if not user:
                    raise ValidationFailed(f"Unknown user id: {user_id}", field=id_field)
            name = user.name if user else None
            if name_field in values and values[name_field] != name:
                raise ValidationFailed(
                    f"{name_field} does not match the user in {id_field}.", field=name_field
                )
            resolved[name_field] = name
        elif name_field in values:
            name = values[name_field]
            if name is None:
                resolved[id_field] = None
                continue
            users = db.exec(select(User).where(User.name == name)).all()
            if not users:
                raise ValidationFailed(f"Unknown user: {name}", field=name_field)
            if len(users) > 1:
                raise ValidationFailed(
                    f"Several users are named {name}; assign by user id instead.", field=name_field
                )
            resolved[id_field] = users[0].id
    return resolved


def can_view(project: Project, viewer: SessionUser) -> bool:
    if viewer.is_privileged:
        return True
    return viewer.id in (project.processorId, project.qaId, project.caseManagerId)


def get_project(db: Session, project_id: str, viewer: SessionUser) -> Project:
    """
    Load one project the viewer is allowed to see.

    Raises:
        RecordNotFound: The id does not exist or is outside the viewer's scope
    """
    project = db.get(Project, project_id)
    if not project or not can_view(project, viewer):
        raise RecordNotFound(f"No such project found with ID: {project_id}")
    return project


def list_projects(db: Session, query: ProjectQuery, viewer: SessionUser) -> ProjectPage:
    page_size = min(query.page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    predicates = build_filter_predicates(query, viewer)
    with store_guard(db, "list_projects"):
        page = paginate(db, predicates, query.sort_key, query.sort_direction, query.page, page_size)
        records = [to_read(project) for project in page.records]
    return ProjectPage(
        records=records,
        total_count=page.total_count,
        total_pages=page.total_pages,
        page=page.page,
        page_size=page.page_size,
    )


def get_all_projects(db: Session) -> List[Project]:
    with store_guard(db, "get_all_projects"):
        return list(db.exec(select(Project).order_by(Project.row_number)).all())


def update_project(
    db: Session,
    project_id: str,
    request: ProjectUpdateRequest,
    actor: SessionUser,
    today: Optional[date] = None,
) -> ProjectRead:
    """
    Apply a role-gated update and the workflow transition its action triggers.

    Args:
        db: Database session
        project_id: Project to update
        request: Submit action plus the submitted field values
        actor: Identity from the verified session
        today: Stamp date, defaults to the server clock

    Returns:
        ProjectRead: The stored project after the update
    """
    project = get_project(db, project_id, actor)
    changes = normalise_changes(request.changes.model_dump(exclude_unset=True))
    if changes.keys() & ASSIGNEE_FIELDS:
        # Report a forbidden field before looking up any user
        workflow.check_fields(request.action, changes)
        changes = resolve_assignees(db, changes)

    updates = workflow.plan_update(project, request.action, changes, actor, today or date.today())

    with store_guard(db, "update_project", project_id=project_id):
        for field, value in updates.items():
            setattr(project, field, value)
        project.updated_at = _utcnow_iso()
        db.add(project)
        db.commit()
        db.refresh(project)
        result = to_read(project)

    logger.info(
        "Project %s updated with %s by %s", project.row_number, request.action.value, actor.email,
        extra={"operation": request.action.value, "project_id": project_id, "user_id": actor.id},
    )
    return result


def _require_manager(actor: SessionUser, what: str) -> None:
    if not actor.is_privileged:
        raise PermissionDenied(f"Only Managers and Admins can {what}.")


def _row_templates(db: Session, request: AddRowsRequest) -> List[Dict[str, Any]]:
    if request.records:
        return [normalise_changes(record.model_dump(exclude_unset=True)) for record in request.records]

    if not request.source_project_id:
        raise ValidationFailed("No data provided to add.", field="source_project_id")
    if not request.count:
        raise ValidationFailed("Count must be a positive number.", field="count")
    unknown = sorted(set(request.fields_to_copy) - COPYABLE_FIELDS)
    if unknown:
        raise ValidationFailed(f"Cannot copy {', '.join(unknown)}.", field="fields_to_copy")

    source = db.get(Project, request.source_project_id)
    if not source:
        raise RecordNotFound("Source project not found.")
    template = {field: getattr(source, field) for field in request.fields_to_copy}
    return [dict(template) for _ in range(request.count)]


def add_rows(
    db: Session,
    request: AddRowsRequest,
    actor: SessionUser,
    today: Optional[date] = None,
) -> AddRowsResult:
    """
    Insert new projects in one transaction, each with a freshly sequenced row number.

    Rows start at "With Processor" / "Pending" / "Pending"; a row that does not
    yet have both a processor and a QA starts at "Pending Allocation" instead.
    """
    _require_manager(actor, "add rows")
    today = today or date.today()
    templates = _row_templates(db, request)
    if len(templates) > settings.BATCH_WRITE_LIMIT:
        raise ValidationFailed(
            f"At most {settings.BATCH_WRITE_LIMIT} rows can be added at once.", field="count"
        )

    prepared = []
    for template in templates:
        values = {k: v for k, v in template.items() if k not in NEW_ROW_CONTROLLED_FIELDS}
        values = resolve_assignees(db, values)
        values["workflowStatus"] = WorkflowStatus.PENDING_ALLOCATION.value
        values.update(workflow.allocation_updates(
            values["workflowStatus"], values.get("processor"), values.get("qa"),
            values.get("allocation_date"), today,
        ))
        values["processing_status"] = ProcessingStatus.PENDING.value
        values["qa_status"] = QAStatus.PENDING.value
        prepared.append(values)

    with store_guard(db, "add_rows"):
        row_numbers = allocate_row_numbers(db, len(prepared), today)
        for row_number, values in zip(row_numbers, prepared):
            db.add(Project(row_number=row_number, **values))
        db.commit()

    logger.info("Added %d rows (%s..%s) by %s", len(row_numbers), row_numbers[0], row_numbers[-1], actor.email,
                extra={"operation": "add_rows", "user_id": actor.id})
    return AddRowsResult(added_count=len(row_numbers), row_numbers=row_numbers)


def _unique(ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(ids))


def bulk_update_projects(
    db: Session,
    request: BulkUpdateRequest,
    actor: SessionUser,
    today: Optional[date] = None,
) -> BulkUpdateResult:
    """
    Set one field to one value on every listed project, all-or-nothing.

    Assigning the last missing processor/QA of a "Pending Allocation" project
    allocates it: it moves to "With Processor" and gets an allocation date.

    Raises:
        RecordNotFound: Any listed id is missing (nothing is written)
        StoreUnavailable: The store rejected the batch (nothing is written)
    """
    _require_manager(actor, "bulk update projects")
    if request.field not in BULK_UPDATABLE_FIELDS:
        raise ValidationFailed(f"Field {request.field} cannot be bulk updated.", field="field")
    project_ids = _unique(request.project_ids)
    if len(project_ids) > settings.BATCH_WRITE_LIMIT:
        raise ValidationFailed(
            f"At most {settings.BATCH_WRITE_LIMIT} projects can be updated at once.", field="project_ids"
        )
    today = today or date.today()

    values = resolve_assignees(db, normalise_changes({request.field: request.value}))

    projects = db.exec(select(Project).where(Project.id.in_(project_ids))).all()
    missing = set(project_ids) - {project.id for project in projects}
    if missing:
        raise RecordNotFound(f"No such project found with ID: {sorted(missing)[0]}")

    # Plan every record before writing any
    planned = []
    for project in projects:
        updates = dict(values)
        state = {field: getattr(project, field) for field in ("workflowStatus", "qa_status", "processing_status", "processor", "qa")}
        state.update({k: v for k, v in updates.items() if k in state})
        allocation = workflow.allocation_updates(
            state["workflowStatus"], state["processor"], state["qa"],
            updates.get("allocation_date", project.allocation_date), today,
        )
        updates.update(allocation)
        state["workflowStatus"] = updates.get("workflowStatus", state["workflowStatus"])
        workflow.check_consistency(state)
        planned.append((project, updates))

    stamp = _utcnow_iso()
    with store_guard(db, "bulk_update_projects"):
        for project, updates in planned:
            for field, value in updates.items():
                setattr(project, field, value)
            project.updated_at = stamp
            db.add(project)
        db.commit()

    logger.info("Bulk set %s on %d projects by %s", request.field, len(planned), actor.email,
                extra={"operation": "bulk_update_projects", "user_id": actor.id})
    return BulkUpdateResult(updated_count=len(planned))


def replace_entries(
    db: Session,
    project_id: str,
    entries: List[ProjectEntryIn],
    actor: SessionUser,
) -> ProjectRead:
    """
    Replace the matters listed under a project.

    Managers and admins may always edit them; the assigned processor may while
    the project is with them.
    """
    project = get_project(db, project_id, actor)
    is_working_processor = (
        project.processorId == actor.id
        and project.workflowStatus == WorkflowStatus.WITH_PROCESSOR.value
    )
    if not actor.is_privileged and not is_working_processor:
        raise PermissionDenied("Not allowed to edit the entries of this project.")

    with store_guard(db, "replace_entries", project_id=project_id):
        project.entries = [
            ProjectEntry(position=position, **normalise_changes(entry.model_dump()))
            for position, entry in enumerate(entries)
        ]
        project.updated_at = _utcnow_iso()
        db.add(project)
        db.commit()
        db.refresh(project)
        return to_read(project)
