from datetime import date
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field
from sqlmodel import SQLModel

from patentflow.models.project import (
    ProjectBase,
    ProjectEntryBase,
    ProcessingStatus,
    QAStatus,
    WorkflowStatus,
)


class SubmitAction(str, Enum):
    SAVE = "save"
    SUBMIT_FOR_QA = "submit_for_qa"
    SUBMIT_QA = "submit_qa"
    SEND_REWORK = "send_rework"
    CLIENT_SUBMIT = "client_submit"


class Operator(str, Enum):
    EQUALS = "equals"
    DATE_EQUALS = "dateEquals"
    IN = "in"
    STARTS_WITH = "startsWith"
    CONTAINS = "contains"
    BLANK = "blank"


class Criterion(BaseModel):
    """One row of the advanced search form; incomplete rows are ignored."""
    field: Optional[str] = None
    operator: Optional[Operator] = None
    value: Optional[Any] = None


class ProjectFilters(BaseModel):
    quick_search: Optional[str] = None
    search_column: str = "any"
    advanced: List[Criterion] = Field(default_factory=list)
    # Dropdown filters of the manager/admin dashboard
    client_name: Optional[str] = None
    process: Optional[str] = None
    # Dashboard queue: narrow to the stage the viewer's role acts on
    queue: bool = False
    # Advisory view role; honoured only when the session holds it
    role: Optional[str] = None


class ProjectQuery(ProjectFilters):
    page: int = Field(default=1, ge=1)
    page_size: Optional[int] = Field(default=None, ge=1)
    sort_key: Optional[str] = None
    sort_direction: Literal["asc", "desc"] = "desc"


class ExportRequest(ProjectFilters):
    sort_key: Optional[str] = None
    sort_direction: Literal["asc", "desc"] = "desc"
    columns: Optional[List[str]] = None


class ProjectEntryRead(ProjectEntryBase):
    id: str


class ProjectEntryIn(ProjectEntryBase):
    pass


class ProjectRead(ProjectBase):
    id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    entries: List[ProjectEntryRead] = Field(default_factory=list)


class ProjectPage(BaseModel):
    records: List[ProjectRead]
    total_count: int
    total_pages: int
    page: int
    page_size: int


class ProjectUpdate(SQLModel):
    """Fields a client may submit; which of them a given actor may set is decided server-side."""
    row_number: Optional[str] = None
    ref_number: Optional[str] = None
    application_number: Optional[str] = None
    patent_number: Optional[str] = None
    client_name: Optional[str] = None
    process: Optional[str] = None
    processor: Optional[str] = None
    processorId: Optional[str] = None
    qa: Optional[str] = None
    qaId: Optional[str] = None
    case_manager: Optional[str] = None
    caseManagerId: Optional[str] = None
    manager_name: Optional[str] = None
    sender: Optional[str] = None
    subject_line: Optional[str] = None
    country: Optional[str] = None
    document_type: Optional[str] = None
    action_taken: Optional[str] = None
    renewal_agent: Optional[str] = None
    workflowStatus: Optional[WorkflowStatus] = None
    processing_status: Optional[ProcessingStatus] = None
    qa_status: Optional[QAStatus] = None
    clientquery_status: Optional[str] = None
    error: Optional[str] = None
    rework_reason: Optional[str] = None
    qa_remark: Optional[str] = None
    client_query_description: Optional[str] = None
    client_comments: Optional[str] = None
    client_error_description: Optional[str] = None
    email_renaming: Optional[str] = None
    email_forwarded: Optional[str] = None
    received_date: Optional[date] = None
    allocation_date: Optional[date] = None
    processing_date: Optional[date] = None
    qa_date: Optional[date] = None
    reportout_date: Optional[date] = None
    client_response_date: Optional[date] = None


class ProjectUpdateRequest(BaseModel):
    action: SubmitAction = SubmitAction.SAVE
    changes: ProjectUpdate = Field(default_factory=ProjectUpdate)


class AddRowsRequest(BaseModel):
    """
    Either copy `fields_to_copy` from `source_project_id` into `count` new rows,
    or insert the explicit `records`.
    """
    source_project_id: Optional[str] = None
    fields_to_copy: List[str] = Field(default_factory=list)
    count: Optional[int] = Field(default=None, ge=1)
    records: Optional[List[ProjectUpdate]] = None


class AddRowsResult(BaseModel):
    added_count: int
    row_numbers: List[str]


class BulkUpdateRequest(BaseModel):
    project_ids: List[str] = Field(min_length=1)
    field: str
    value: Any = None


class BulkUpdateResult(BaseModel):
    updated_count: int
