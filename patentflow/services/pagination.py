"""
Project Pagination Engine

Forward-only cursor pagination plus a separate COUNT for total size:

1. COUNT(*) under the predicate set gives `total_count`.
2. For page > 1, an auxiliary query limited to (page - 1) * page_size rows
   under the same predicates and sort locates the cursor: its last row.
3. The final query returns up to `page_size` rows strictly after that cursor.

Read cost therefore grows with page depth (O(page * page_size)); no cursor is
kept between requests. Count and page fetch are separate statements, so a
concurrent write between them can make `total_count` and the page disagree
slightly.
"""
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from sqlalchemy import and_, func, or_
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import Session, select

from patentflow.core.errors import ValidationFailed
from patentflow.models.project import Project, ProjectBase

DEFAULT_SORT_KEY = "row_number"

SORTABLE_FIELDS = frozenset(ProjectBase.model_fields) | {"created_at", "updated_at"}


@dataclass
class Page:
    records: List[Project]
    total_count: int
    total_pages: int
    page: int
    page_size: int


def resolve_sort_key(sort_key: Optional[str]) -> str:
    if not sort_key or sort_key == "id":
        return DEFAULT_SORT_KEY
    if sort_key not in SORTABLE_FIELDS:
        raise ValidationFailed(f"Cannot sort by {sort_key}", field="sort_key")
    return sort_key


def order_clauses(sort_key: str, descending: bool) -> list:
    """
    Sort by the requested column with the record id as tie-breaker.

    NULL placement is pinned (first ascending, last descending) so the cursor
    predicate below is valid on every backend.
    """
    column = getattr(Project, sort_key)
    if descending:
        return [column.desc().nulls_last(), Project.id.desc()]
    return [column.asc().nulls_first(), Project.id.asc()]


def after_cursor(sort_key: str, descending: bool, cursor: Project) -> ColumnElement:
    """Predicate selecting the rows that sort strictly after `cursor`."""
    column = getattr(Project, sort_key)
    value: Any = getattr(cursor, sort_key)

    if descending:
        if value is None:
            return and_(column.is_(None), Project.id < cursor.id)
        return or_(
            column < value,
            column.is_(None),
            and_(column == value, Project.id < cursor.id),
        )

    if value is None:
        return or_(column.is_not(None), and_(column.is_(None), Project.id > cursor.id))
    return or_(column > value, and_(column == value, Project.id > cursor.id))


def count_projects(db: Session, predicates: Sequence[ColumnElement]) -> int:
    statement = select(func.count()).select_from(Project)
    if predicates:
        statement = statement.where(and_(*predicates))
    return db.exec(statement).one()


def paginate(
    db: Session,
    predicates: Sequence[ColumnElement],
    sort_key: Optional[str],
    sort_direction: str,
    page: int,
    page_size: int,
) -> Page:
    """
    Fetch one page of projects.

    Args:
        db: Database session
        predicates: Conjunctive predicate set from the filter builder
        sort_key: Column to order by (defaults to row_number)
        sort_direction: "asc" or "desc"
        page: 1-based page number
        page_size: Rows per page

    Returns:
        Page: The records plus total_count and total_pages
    """
    if page < 1:
        raise ValidationFailed("Page must be 1 or greater", field="page")
    if page_size < 1:
        raise ValidationFailed("Page size must be 1 or greater", field="page_size")

    key = resolve_sort_key(sort_key)
    descending = sort_direction != "asc"
    where = and_(*predicates) if predicates else None

    total_count = count_projects(db, predicates)
    total_pages = math.ceil(total_count / page_size)

    statement = select(Project)
    if where is not None:
        statement = statement.where(where)
    statement = statement.order_by(*order_clauses(key, descending))

    if page > 1:
        skipped = (page - 1) * page_size
        preceding = db.exec(statement.limit(skipped)).all()
        if len(preceding) < skipped:
            # Past the last page
            return Page([], total_count, total_pages, page, page_size)
        statement = statement.where(after_cursor(key, descending, preceding[-1]))

    records = list(db.exec(statement.limit(page_size)).all())
    return Page(records, total_count, total_pages, page, page_size)


def fetch_all(
    db: Session,
    predicates: Sequence[ColumnElement],
    sort_key: Optional[str],
    sort_direction: str,
) -> List[Project]:
    """Every matching project in sort order (CSV export)."""
    key = resolve_sort_key(sort_key)
    statement = select(Project)
    if predicates:
        statement = statement.where(and_(*predicates))
    statement = statement.order_by(*order_clauses(key, sort_direction != "asc"))
    return list(db.exec(statement).all())
