"""
Row-Number Sequencer

Row numbers look like PF2400001: the configured prefix, the two-digit year and
a five-digit zero-padded sequence that restarts each year.

Sequences come from a per-prefix counter row that is incremented with a
single UPDATE ... SET last_sequence = last_sequence + n inside the caller's
transaction. The database serialises concurrent increments on that row, so
two batches racing for the same year can never be handed overlapping ranges.
The first batch of a year creates the counter, seeding it from the highest
row number already stored under that prefix.
"""
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy import func, update
from sqlmodel import Session, select

from patentflow.core.config import settings
from patentflow.core.errors import ValidationFailed
from patentflow.models.project import Project, RowNumberCounter

logger = logging.getLogger(__name__)

SEQUENCE_DIGITS = 5
MAX_SEQUENCE = 10 ** SEQUENCE_DIGITS - 1


def year_prefix(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{settings.ROW_NUMBER_PREFIX}{today.year % 100:02d}"


def format_row_number(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence:0{SEQUENCE_DIGITS}d}"


def parse_sequence(row_number: str, prefix: str) -> Optional[int]:
    """Numeric suffix of a row number issued under `prefix`, else None."""
    if not row_number or not row_number.startswith(prefix):
        return None
    suffix = row_number[len(prefix):]
    return int(suffix) if suffix.isdigit() else None


def _highest_stored_sequence(db: Session, prefix: str) -> int:
    statement = select(func.max(Project.row_number)).where(
        Project.row_number >= prefix,
        Project.row_number < prefix + "Z",
    )
    highest = db.exec(statement).one()
    if highest is None:
        return 0
    return parse_sequence(highest, prefix) or 0


def _increment(db: Session, prefix: str, count: int) -> bool:
    result = db.exec(
        update(RowNumberCounter)
        .where(RowNumberCounter.prefix == prefix)
        .values(last_sequence=RowNumberCounter.last_sequence + count)
    )
    return result.rowcount == 1


def allocate_row_numbers(db: Session, count: int, today: Optional[date] = None) -> List[str]:
    """
    Reserve `count` consecutive row numbers for the current year.

    Must run in the same transaction as the inserts that use the numbers:
    if that transaction rolls back the reservation rolls back with it.

    Args:
        db: Database session (not committed here)
        count: How many numbers to reserve
        today: Date whose year selects the prefix (defaults to the server clock)

    Returns:
        List[str]: Strictly increasing row numbers, e.g. ["PF2400001", "PF2400002"]
    """
    if count < 1:
        raise ValidationFailed("Count must be a positive number.", field="count")

    prefix = year_prefix(today)

    if not _increment(db, prefix, count):
        seed = _highest_stored_sequence(db, prefix)
        try:
            with db.begin_nested():
                db.add(RowNumberCounter(prefix=prefix, last_sequence=seed + count))
        except sa_exc.IntegrityError:
            # Another batch created the counter first; take the next range from it
            logger.info("Row number counter for %s created concurrently, retrying increment", prefix)
            if not _increment(db, prefix, count):
                raise

    last = db.exec(
        select(RowNumberCounter.last_sequence).where(RowNumberCounter.prefix == prefix)
    ).one()
    if last > MAX_SEQUENCE:
        raise ValidationFailed(f"Row numbers for {prefix} are exhausted", field="count")

    first = last - count + 1
    return [format_row_number(prefix, sequence) for sequence in range(first, last + 1)]
