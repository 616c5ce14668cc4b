"""
Project Filter Builder

Translates a structured search (quick search, advanced criteria, dashboard
dropdowns and the viewer's role) into a list of SQLAlchemy predicates that
are ANDed together by the caller.

Prefix semantics: `startsWith` and `contains` are both encoded as the
half-open range [value, value + PREFIX_SENTINEL). This is a prefix match,
not substring containment: "Client A" matches "Client A Ltd" but not
"Big Client A Co".
"""
from datetime import date, timedelta
from typing import Any, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.sql.elements import ColumnElement

from patentflow.core.errors import ValidationFailed
from patentflow.models.project import (
    DATE_FIELDS,
    Project,
    ProjectBase,
    ProcessingStatus,
    WorkflowStatus,
)
from patentflow.models.user import Role
from patentflow.schemas.auth import SessionUser
from patentflow.schemas.project import Criterion, Operator, ProjectFilters

PREFIX_SENTINEL = "\uffff"

FILTERABLE_FIELDS = frozenset(ProjectBase.model_fields)

# Columns a quick search over "any" looks at
QUICK_SEARCH_DEFAULT_COLUMNS = (
    "row_number",
    "ref_number",
    "application_number",
    "patent_number",
    "subject_line",
    "client_name",
)


def _column(field: str):
    if field not in FILTERABLE_FIELDS:
        raise ValidationFailed(f"Unknown search field: {field}", field=field)
    return getattr(Project, field)


def parse_day(value: Any, field: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationFailed(f"Invalid date: {value}", field=field)


def prefix_range(column, value: str) -> List[ColumnElement]:
    return [column >= value, column < value + PREFIX_SENTINEL]


def day_range(column, day: date) -> List[ColumnElement]:
    """Bound a date column to one calendar day, [start of day, start of next day)."""
    return [column >= day, column < day + timedelta(days=1)]


def _coerce(field: str, value: Any) -> Any:
    if field in DATE_FIELDS:
        return parse_day(value, field)
    return value


def criterion_predicates(criterion: Criterion) -> List[ColumnElement]:
    """
    Encode one advanced criterion.

    Rows missing a field or operator, and non-blank rows without a value,
    produce no predicate.
    """
    if not criterion.field or not criterion.operator:
        return []
    operator = criterion.operator
    value = criterion.value
    if operator != Operator.BLANK and (value is None or value == ""):
        return []

    column = _column(criterion.field)

    if operator in (Operator.EQUALS, Operator.DATE_EQUALS):
        return [column == _coerce(criterion.field, value)]

    if operator == Operator.IN:
        if isinstance(value, str):
            items = [item.strip() for item in value.split(",")]
        else:
            items = [str(item).strip() for item in value]
        items = [_coerce(criterion.field, item) for item in items if item]
        return [column.in_(items)] if items else []

    if operator in (Operator.STARTS_WITH, Operator.CONTAINS):
        return prefix_range(column, str(value))

    if operator == Operator.BLANK:
        return [column.is_(None)]

    raise ValidationFailed(f"Unsupported operator: {operator}", field=criterion.field)


def quick_search_predicates(term: Optional[str], search_column: str) -> List[ColumnElement]:
    term = (term or "").strip()
    if not term:
        return []

    if search_column == "any":
        # The only disjunction a predicate set ever contains
        return [or_(*[
            and_(*prefix_range(getattr(Project, name), term))
            for name in QUICK_SEARCH_DEFAULT_COLUMNS
        ])]

    column = _column(search_column)
    if search_column in DATE_FIELDS:
        return day_range(column, parse_day(term, search_column))
    return prefix_range(column, term)


def visibility_predicates(viewer: SessionUser, requested_role: Optional[str] = None, queue: bool = False) -> List[ColumnElement]:
    """
    Role scope of a query.

    Processors, QA and case managers only ever see projects assigned to them;
    managers and admins see everything. With `queue` set the scope is further
    narrowed to the stage that role acts on. A requested role the viewer does
    not hold falls back to their highest one.
    """
    role = viewer.active_role(requested_role)
    if role == Role.PROCESSOR:
        predicates = [Project.processorId == viewer.id]
        if queue:
            predicates.append(Project.workflowStatus == WorkflowStatus.WITH_PROCESSOR.value)
        return predicates
    if role == Role.QA:
        predicates = [Project.qaId == viewer.id]
        if queue:
            predicates.append(Project.workflowStatus == WorkflowStatus.WITH_QA.value)
        return predicates
    if role == Role.CASE_MANAGER:
        predicates = [Project.caseManagerId == viewer.id]
        if queue:
            predicates.append(Project.processing_status == ProcessingStatus.CLIENT_QUERY.value)
        return predicates
    return []


def build_filter_predicates(filters: ProjectFilters, viewer: SessionUser) -> List[ColumnElement]:
    """
    Compose the full conjunctive predicate set for a project query.

    Args:
        filters: Quick search, advanced criteria and dashboard filters
        viewer: Identity from the verified session

    Returns:
        List of predicates to be ANDed; empty for an unfiltered manager/admin view
    """
    predicates = visibility_predicates(viewer, filters.role, filters.queue)

    if filters.client_name and filters.client_name != "all":
        predicates.append(Project.client_name == filters.client_name)
    if filters.process and filters.process != "all":
        predicates.append(Project.process == filters.process)

    for criterion in filters.advanced:
        predicates.extend(criterion_predicates(criterion))

    predicates.extend(quick_search_predicates(filters.quick_search, filters.search_column))
    return predicates
