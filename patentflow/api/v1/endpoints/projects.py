"""
Project Endpoints Module

This module provides the query, update and bulk endpoints for project records.
Visibility follows the verified session: processors, QA and case managers only
ever see projects assigned to them, managers and admins see everything.
"""
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlmodel import Session

from patentflow.api import deps
from patentflow.db.session import get_db
from patentflow.schemas.auth import SessionUser
from patentflow.schemas.project import (
    AddRowsRequest,
    AddRowsResult,
    BulkUpdateRequest,
    BulkUpdateResult,
    ExportRequest,
    ProjectEntryIn,
    ProjectEntryRead,
    ProjectPage,
    ProjectQuery,
    ProjectRead,
    ProjectUpdateRequest,
)
from patentflow.services import export as export_service
from patentflow.services import projects as project_service

router = APIRouter()


@router.get("", response_model=ProjectPage)
def list_projects(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    sort_key: Optional[str] = None,
    sort_direction: Literal["asc", "desc"] = "desc",
    quick_search: Optional[str] = None,
    search_column: str = "any",
    client_name: Optional[str] = None,
    process: Optional[str] = None,
    queue: bool = False,
    role: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.get_current_user),
):
    """
    Retrieve one page of projects.

    Args:
        page: 1-based page number
        page_size: Rows per page (capped by MAX_PAGE_SIZE)
        quick_search: Prefix searched in `search_column` ("any" for the default columns)
        queue: Narrow to the stage the active role acts on (dashboard view)
        role: Active view role; ignored unless the session holds it

    Returns:
        ProjectPage: Records plus total_count and total_pages
    """
    query = ProjectQuery(
        page=page,
        page_size=page_size,
        sort_key=sort_key,
        sort_direction=sort_direction,
        quick_search=quick_search,
        search_column=search_column,
        client_name=client_name,
        process=process,
        queue=queue,
        role=role,
    )
    return project_service.list_projects(db, query, current_user)


@router.post("/search", response_model=ProjectPage)
def search_projects(
    query: ProjectQuery,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.get_current_user),
):
    """Same as the list endpoint, with advanced criteria in the body."""
    return project_service.list_projects(db, query, current_user)


@router.post("/export")
def export_projects(
    request: ExportRequest,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.get_current_user),
):
    """Every matching project (not just one page) as a CSV download."""
    content = export_service.export_projects_csv(db, request, current_user)
    filename = export_service.export_filename()
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/add-rows", response_model=AddRowsResult)
def add_rows(
    request: AddRowsRequest,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.require_manager),
):
    """
    Add rows copied from a source project, or explicit records.

    All rows are inserted in one transaction with consecutive row numbers.
    """
    return project_service.add_rows(db, request, current_user)


@router.post("/bulk-update", response_model=BulkUpdateResult)
def bulk_update(
    request: BulkUpdateRequest,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.require_manager),
):
    """Set one field on many projects; all-or-nothing."""
    return project_service.bulk_update_projects(db, request, current_user)


@router.get("/{project_id}", response_model=ProjectRead)
def read_project(
    project_id: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.get_current_user),
):
    """
    Get a specific project by ID.

    Raises:
        404: The project doesn't exist or is not visible to the caller
    """
    project = project_service.get_project(db, project_id, current_user)
    return project_service.to_read(project)


@router.patch("/{project_id}", response_model=ProjectRead)
def update_project(
    project_id: str,
    request: ProjectUpdateRequest,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.get_current_user),
):
    """
    Update a project and apply the workflow transition of `request.action`.

    Which fields may be changed, and which action is allowed, depends on the
    caller's roles and assignment, never on anything in the request.
    """
    return project_service.update_project(db, project_id, request, current_user)


@router.get("/{project_id}/entries", response_model=List[ProjectEntryRead])
def read_entries(
    project_id: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.get_current_user),
):
    project = project_service.get_project(db, project_id, current_user)
    return project_service.to_read(project).entries


@router.put("/{project_id}/entries", response_model=List[ProjectEntryRead])
def replace_entries(
    project_id: str,
    entries: List[ProjectEntryIn],
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.get_current_user),
):
    return project_service.replace_entries(db, project_id, entries, current_user).entries
