"""
Project Model Module

This module defines the Project case record, its ProjectEntry sub-records, the
three status axes that drive the processing workflow, and the per-year counter
used to hand out row numbers.
"""
from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional
import uuid

from sqlmodel import SQLModel, Field, Relationship


class WorkflowStatus(str, Enum):
    """Coarse stage of a case; determines which role may currently act."""
    PENDING_ALLOCATION = "Pending Allocation"
    WITH_PROCESSOR = "With Processor"
    WITH_QA = "With QA"
    COMPLETED = "Completed"


class ProcessingStatus(str, Enum):
    """Processor-side fine status."""
    PENDING = "Pending"
    ON_HOLD = "On Hold"
    REWORK = "Re-Work"
    PROCESSED = "Processed"
    NTP = "NTP"
    CLIENT_QUERY = "Client Query"
    ALREADY_PROCESSED = "Already Processed"


class QAStatus(str, Enum):
    """QA-side fine status."""
    PENDING = "Pending"
    COMPLETE = "Complete"
    NTP = "NTP"
    CLIENT_QUERY = "Client Query"
    ALREADY_PROCESSED = "Already Processed"


# A processor may only hand a project to QA with one of these outcomes
PROCESSOR_SUBMISSION_STATUSES = {
    ProcessingStatus.PROCESSED,
    ProcessingStatus.NTP,
    ProcessingStatus.CLIENT_QUERY,
    ProcessingStatus.ALREADY_PROCESSED,
}

# Statuses a processor can still be working under
PROCESSOR_ACTIONABLE_STATUSES = {
    ProcessingStatus.PENDING,
    ProcessingStatus.ON_HOLD,
    ProcessingStatus.REWORK,
}

QA_SUBMISSION_STATUSES = {
    QAStatus.COMPLETE,
    QAStatus.NTP,
    QAStatus.CLIENT_QUERY,
    QAStatus.ALREADY_PROCESSED,
}

PROCESSES = ["Patent", "TM", "IDS", "Project"]

DATE_FIELDS = (
    "received_date",
    "allocation_date",
    "processing_date",
    "qa_date",
    "reportout_date",
    "client_response_date",
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProjectBase(SQLModel):
    """
    Fields shared by the stored Project and its API representations.

    Note: workflowStatus, processorId, qaId and caseManagerId keep their
    camelCase names for compatibility with the existing record layout.
    """
    # Human-facing reference, assigned once at creation (e.g. "PF2400001")
    row_number: Optional[str] = Field(default=None, unique=True, index=True)
    ref_number: Optional[str] = None
    application_number: Optional[str] = None
    patent_number: Optional[str] = None

    # Classification
    client_name: Optional[str] = Field(default=None, index=True)
    process: Optional[str] = Field(default="Patent", index=True)
    country: Optional[str] = None
    document_type: Optional[str] = None
    renewal_agent: Optional[str] = None

    # Assignment - names are displayed, ids scope the queues
    processor: Optional[str] = Field(default=None, index=True)
    processorId: Optional[str] = Field(default=None, index=True)
    qa: Optional[str] = Field(default=None, index=True)
    qaId: Optional[str] = Field(default=None, index=True)
    case_manager: Optional[str] = None
    caseManagerId: Optional[str] = Field(default=None, index=True)
    manager_name: Optional[str] = None

    # Intake
    sender: Optional[str] = None
    subject_line: Optional[str] = None

    # Calendar dates, all optional
    received_date: Optional[date] = None
    allocation_date: Optional[date] = None
    processing_date: Optional[date] = None
    qa_date: Optional[date] = None
    reportout_date: Optional[date] = None
    client_response_date: Optional[date] = None

    # Status axes - stored as their display values (see the enums above)
    workflowStatus: str = Field(default=WorkflowStatus.WITH_PROCESSOR.value, index=True)
    processing_status: str = Field(default=ProcessingStatus.PENDING.value, index=True)
    qa_status: str = Field(default=QAStatus.PENDING.value, index=True)
    clientquery_status: Optional[str] = None

    # Free text
    action_taken: Optional[str] = None
    error: Optional[str] = None
    rework_reason: Optional[str] = None
    qa_remark: Optional[str] = None
    client_query_description: Optional[str] = None
    client_comments: Optional[str] = None
    client_error_description: Optional[str] = None
    email_renaming: Optional[str] = None
    email_forwarded: Optional[str] = None


class Project(ProjectBase, table=True):
    """
    Project case record.

    Projects are never physically deleted; they move through the workflow
    until they reach the terminal "Completed" state.

    Attributes:
        id: Internal record id (UUID), distinct from the human-facing row_number
        entries: Matters derived from the same intake email
        created_at: ISO timestamp when the record was inserted
        updated_at: ISO timestamp of the last write
    """
    __tablename__ = "projects"

    id: str = Field(default_factory=_new_id, primary_key=True)

    created_at: Optional[str] = Field(default_factory=_utcnow_iso)
    updated_at: Optional[str] = Field(default_factory=_utcnow_iso)

    entries: List["ProjectEntry"] = Relationship(
        back_populates="project",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "ProjectEntry.position"},
    )


class ProjectEntryBase(SQLModel):
    application_number: Optional[str] = None
    patent_number: Optional[str] = None
    country: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None


class ProjectEntry(ProjectEntryBase, table=True):
    """
    One matter of a multi-matter project (e.g. several applications named in
    a single subject line).
    """
    __tablename__ = "project_entries"

    id: str = Field(default_factory=_new_id, primary_key=True)
    project_id: str = Field(foreign_key="projects.id", index=True, nullable=False)
    position: int = 0  # Keeps the order the entries were submitted in

    project: Optional[Project] = Relationship(back_populates="entries")


class RowNumberCounter(SQLModel, table=True):
    """
    Last row-number sequence issued per year prefix (e.g. "PF24" -> 17).

    Incremented inside the same transaction as the inserts it numbers, so two
    concurrent batches can never receive the same sequence.
    """
    __tablename__ = "row_number_counters"

    prefix: str = Field(primary_key=True)
    last_sequence: int = Field(default=0, nullable=False)
