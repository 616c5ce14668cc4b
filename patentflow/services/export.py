"""
CSV export of the filtered project list.

Exports every matching record (not just the visible page) with the same
filters and visibility as the list view.
"""
import csv
import io
import logging
from datetime import date
from typing import List, Optional, Sequence

from sqlmodel import Session

from patentflow.core.errors import ValidationFailed
from patentflow.db.guard import store_guard
from patentflow.models.project import Project
from patentflow.schemas.auth import SessionUser
from patentflow.schemas.project import ExportRequest
from patentflow.services.filters import FILTERABLE_FIELDS, build_filter_predicates
from patentflow.services.pagination import fetch_all

logger = logging.getLogger(__name__)

# Columns of the dashboard table, in display order
DEFAULT_EXPORT_COLUMNS = [
    "row_number",
    "ref_number",
    "application_number",
    "patent_number",
    "client_name",
    "process",
    "processor",
    "qa",
    "case_manager",
    "subject_line",
    "received_date",
    "allocation_date",
    "workflowStatus",
    "processing_status",
    "qa_status",
    "processing_date",
    "qa_date",
    "reportout_date",
]

HEADER_LABELS = {
    "row_number": "Row Number",
    "ref_number": "Ref Number",
    "application_number": "Application Number",
    "patent_number": "Patent Number",
    "client_name": "Client Name",
    "workflowStatus": "Workflow Status",
    "processing_status": "Processing Status",
    "qa_status": "QA Status",
    "qa": "QA",
    "qaId": "QA Id",
    "processorId": "Processor Id",
    "caseManagerId": "Case Manager Id",
    "qa_date": "QA Date",
    "qa_remark": "QA Remark",
    "clientquery_status": "Client Query Status",
}


def header_label(column: str) -> str:
    return HEADER_LABELS.get(column) or column.replace("_", " ").title()


def export_filename(today: Optional[date] = None) -> str:
    return f"projects_export_{(today or date.today()).isoformat()}.csv"


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def render_csv(projects: Sequence[Project], columns: Sequence[str]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([header_label(column) for column in columns])
    for project in projects:
        writer.writerow([_cell(getattr(project, column)) for column in columns])
    return buffer.getvalue()


def export_projects_csv(db: Session, request: ExportRequest, viewer: SessionUser) -> str:
    """
    Render every project matching `request` as CSV.

    Raises:
        ValidationFailed: An unknown column was requested
    """
    columns: List[str] = list(request.columns or DEFAULT_EXPORT_COLUMNS)
    unknown = [column for column in columns if column not in FILTERABLE_FIELDS]
    if unknown:
        raise ValidationFailed(f"Unknown export column: {unknown[0]}", field="columns")

    predicates = build_filter_predicates(request, viewer)
    with store_guard(db, "export_projects"):
        projects = fetch_all(db, predicates, request.sort_key, request.sort_direction)
        content = render_csv(projects, columns)

    logger.info("Exported %d projects for %s", len(projects), viewer.email,
                extra={"operation": "export_projects", "user_id": viewer.id})
    return content
