"""
Project Workflow State Machine

    Pending Allocation -> With Processor -> With QA -> Completed
                               ^              |
                               +-- rework ----+

Transitions only happen on an explicit submit action. Every decision here is
taken against the verified session identity: the actor must hold the role
the action needs and must be the person assigned to the project. Dates are
stamped from the server clock.

`plan_update` is pure; it returns the field values to write and raises
before anything touches the store.
"""
from datetime import date
from typing import Any, Dict, FrozenSet, Optional

from patentflow.core.errors import PermissionDenied, ValidationFailed
from patentflow.models.project import (
    PROCESSOR_SUBMISSION_STATUSES,
    QA_SUBMISSION_STATUSES,
    Project,
    ProcessingStatus,
    QAStatus,
    WorkflowStatus,
)
from patentflow.models.user import Role
from patentflow.schemas.auth import SessionUser
from patentflow.schemas.project import ProjectUpdate, SubmitAction

# Only transitions move these, and row numbers are never reassigned
SERVER_CONTROLLED_FIELDS = frozenset({"workflowStatus", "row_number"})

MANAGER_FIELDS: FrozenSet[str] = frozenset(ProjectUpdate.model_fields) - SERVER_CONTROLLED_FIELDS

PROCESSOR_FIELDS = frozenset({
    "processing_status",
    "action_taken",
    "error",
    "country",
    "document_type",
    "renewal_agent",
    "application_number",
    "patent_number",
    "email_renaming",
    "email_forwarded",
    "client_query_description",
})

QA_FIELDS = frozenset({
    "qa_status",
    "qa_remark",
    "rework_reason",
    "error",
    "client_error_description",
})

CASE_MANAGER_FIELDS = frozenset({
    "clientquery_status",
    "client_comments",
    "client_error_description",
})

# action -> (roles that may perform it, fields the actor may change with it)
ACTION_RULES: Dict[SubmitAction, tuple] = {
    SubmitAction.SAVE: ((Role.MANAGER, Role.ADMIN), MANAGER_FIELDS),
    SubmitAction.SUBMIT_FOR_QA: ((Role.PROCESSOR,), PROCESSOR_FIELDS),
    SubmitAction.SUBMIT_QA: ((Role.QA,), QA_FIELDS),
    SubmitAction.SEND_REWORK: ((Role.QA,), QA_FIELDS),
    SubmitAction.CLIENT_SUBMIT: ((Role.CASE_MANAGER,), CASE_MANAGER_FIELDS),
}

# Workflow stage an action may start from (None: any stage)
REQUIRED_STAGE: Dict[SubmitAction, Optional[WorkflowStatus]] = {
    SubmitAction.SAVE: None,
    SubmitAction.SUBMIT_FOR_QA: WorkflowStatus.WITH_PROCESSOR,
    SubmitAction.SUBMIT_QA: WorkflowStatus.WITH_QA,
    SubmitAction.SEND_REWORK: WorkflowStatus.WITH_QA,
    SubmitAction.CLIENT_SUBMIT: None,
}

# Project column naming the assignee each role must match
ASSIGNEE_COLUMN = {
    Role.PROCESSOR: "processorId",
    Role.QA: "qaId",
    Role.CASE_MANAGER: "caseManagerId",
}

STATUS_FIELDS = frozenset({"processing_status", "qa_status", "processor", "processorId", "qa", "qaId"})


def authorize(project: Project, action: SubmitAction, actor: SessionUser) -> None:
    """Reject the action unless the session may perform it on this project right now."""
    roles, _ = ACTION_RULES[action]
    acting_role = next((role for role in roles if role in actor.roles), None)
    if acting_role is None:
        needed = " or ".join(role.value for role in roles)
        raise PermissionDenied(f"Only {needed} users can {action.value.replace('_', ' ')}.")

    assignee_column = ASSIGNEE_COLUMN.get(acting_role)
    if assignee_column and getattr(project, assignee_column) != actor.id:
        raise PermissionDenied("This project is not assigned to you.")

    stage = REQUIRED_STAGE[action]
    if stage is not None and project.workflowStatus != stage.value:
        raise PermissionDenied(
            f"Cannot {action.value.replace('_', ' ')} while the project is {project.workflowStatus}."
        )

    if action == SubmitAction.CLIENT_SUBMIT:
        if project.workflowStatus == WorkflowStatus.COMPLETED.value:
            raise PermissionDenied("The project is already completed.")
        if project.processing_status != ProcessingStatus.CLIENT_QUERY.value:
            raise PermissionDenied("The project has no open client query.")


def check_fields(action: SubmitAction, changes: Dict[str, Any]) -> None:
    _, allowed = ACTION_RULES[action]
    forbidden = sorted(set(changes) - allowed)
    if forbidden:
        raise PermissionDenied(
            f"Not allowed to change {', '.join(forbidden)} with {action.value}.",
            field=forbidden[0],
        )


def check_consistency(state: Dict[str, Any]) -> None:
    """
    The workflow stage and the two fine statuses must agree, and a project
    past allocation always has both a processor and a QA assignee.
    """
    stage = state["workflowStatus"]
    qa_status = state["qa_status"]
    processing_status = state["processing_status"]

    if stage != WorkflowStatus.PENDING_ALLOCATION.value:
        if not state.get("processor") or not state.get("qa"):
            raise ValidationFailed(
                "A project past allocation needs both a processor and a QA.",
                field="processor" if not state.get("processor") else "qa",
            )

    if stage in (WorkflowStatus.PENDING_ALLOCATION.value, WorkflowStatus.WITH_PROCESSOR.value):
        if qa_status != QAStatus.PENDING.value:
            raise ValidationFailed(f"QA status must be Pending while {stage}.", field="qa_status")
    elif stage == WorkflowStatus.WITH_QA.value:
        if qa_status != QAStatus.PENDING.value:
            raise ValidationFailed("QA status must be Pending while With QA.", field="qa_status")
        if processing_status not in {status.value for status in PROCESSOR_SUBMISSION_STATUSES}:
            raise ValidationFailed(
                "Processing status must be a submitted outcome while With QA.",
                field="processing_status",
            )
    elif stage == WorkflowStatus.COMPLETED.value:
        if qa_status not in {status.value for status in QA_SUBMISSION_STATUSES}:
            raise ValidationFailed("A completed project needs a final QA status.", field="qa_status")


def allocation_updates(
    workflow_status: str,
    processor: Optional[str],
    qa: Optional[str],
    allocation_date: Optional[date],
    today: date,
) -> Dict[str, Any]:
    """A "Pending Allocation" project with both assignees moves to "With Processor"."""
    if workflow_status != WorkflowStatus.PENDING_ALLOCATION.value or not (processor and qa):
        return {}
    updates: Dict[str, Any] = {"workflowStatus": WorkflowStatus.WITH_PROCESSOR.value}
    if not allocation_date:
        updates["allocation_date"] = today
    return updates


def plan_update(
    project: Project,
    action: SubmitAction,
    changes: Dict[str, Any],
    actor: SessionUser,
    today: date,
) -> Dict[str, Any]:
    """
    Work out every field value an action writes.

    Args:
        project: Current stored state
        action: Submit action requested
        changes: Client-submitted field values (already normalised)
        actor: Identity from the verified session
        today: Server date used for stamps

    Returns:
        dict: Field -> new value, including the transition's own effects

    Raises:
        PermissionDenied: Wrong role, not the assignee, wrong stage or forbidden field
        ValidationFailed: Missing rework reason or an inconsistent resulting state
    """
    authorize(project, action, actor)
    check_fields(action, changes)

    updates = dict(changes)

    def resulting(field: str) -> Any:
        return updates[field] if field in updates else getattr(project, field)

    if action == SubmitAction.SUBMIT_FOR_QA:
        if resulting("processing_status") not in {s.value for s in PROCESSOR_SUBMISSION_STATUSES}:
            raise ValidationFailed(
                "Choose a processing outcome before submitting for QA.", field="processing_status"
            )
        updates["workflowStatus"] = WorkflowStatus.WITH_QA.value
        updates["qa_status"] = QAStatus.PENDING.value
        updates["processing_date"] = today

    elif action == SubmitAction.SUBMIT_QA:
        if resulting("qa_status") not in {s.value for s in QA_SUBMISSION_STATUSES}:
            raise ValidationFailed("Choose a QA outcome before submitting.", field="qa_status")
        updates["workflowStatus"] = WorkflowStatus.COMPLETED.value
        updates["qa_date"] = today

    elif action == SubmitAction.SEND_REWORK:
        reason = updates.get("rework_reason")
        if not reason or not str(reason).strip():
            raise ValidationFailed("A rework reason is required.", field="rework_reason")
        updates["workflowStatus"] = WorkflowStatus.WITH_PROCESSOR.value
        updates["processing_status"] = ProcessingStatus.REWORK.value
        updates["qa_status"] = QAStatus.PENDING.value

    elif action == SubmitAction.CLIENT_SUBMIT:
        updates["workflowStatus"] = WorkflowStatus.WITH_QA.value
        updates["qa_status"] = QAStatus.PENDING.value
        updates["client_response_date"] = today

    elif action == SubmitAction.SAVE:
        updates.update(allocation_updates(
            resulting("workflowStatus"), resulting("processor"), resulting("qa"),
            resulting("allocation_date"), today,
        ))

    if action != SubmitAction.SAVE or STATUS_FIELDS & set(updates):
        check_consistency({
            field: resulting(field)
            for field in ("workflowStatus", "qa_status", "processing_status", "processor", "qa")
        })

    return updates


def available_actions(project: Project, actor: SessionUser) -> Dict[SubmitAction, FrozenSet[str]]:
    """Actions the actor may perform on the project now, each with the fields it may change."""
    available = {}
    for action, (_, fields) in ACTION_RULES.items():
        try:
            authorize(project, action, actor)
        except PermissionDenied:
            continue
        available[action] = fields
    return available
