from .user import User, Role, ROLE_PRECEDENCE, highest_role
from .project import (
    Project, ProjectEntry, RowNumberCounter,
    WorkflowStatus, ProcessingStatus, QAStatus,
)
from .metadata import Client, Process, Country, DocumentType, RenewalAgent, METADATA_KINDS

__all__ = [
    "User", "Role", "ROLE_PRECEDENCE", "highest_role",
    "Project", "ProjectEntry", "RowNumberCounter",
    "WorkflowStatus", "ProcessingStatus", "QAStatus",
    "Client", "Process", "Country", "DocumentType", "RenewalAgent", "METADATA_KINDS",
]
