import logging
from typing import Dict, List, Type

from sqlmodel import Session, select

from patentflow.core.errors import RecordNotFound, ValidationFailed
from patentflow.db.guard import store_guard
from patentflow.models.metadata import METADATA_KINDS, MetadataItem
from patentflow.models.project import Project

logger = logging.getLogger(__name__)


def model_for(kind: str) -> Type[MetadataItem]:
    if kind not in METADATA_KINDS:
        raise RecordNotFound(f"Unknown metadata list: {kind}")
    return METADATA_KINDS[kind][0]


def _clean_name(name: str) -> str:
    if not name or not isinstance(name, str) or not name.strip():
        raise ValidationFailed("Item name cannot be empty.", field="name")
    return name.strip()


def _ensure_unique(db: Session, model: Type[MetadataItem], name: str, exclude_id: str = None) -> None:
    existing = db.exec(select(model).where(model.name == name)).first()
    if existing and existing.id != exclude_id:
        raise ValidationFailed(f'Item "{name}" already exists in this collection.', field="name")


def list_items(db: Session, kind: str) -> List[MetadataItem]:
    model = model_for(kind)
    with store_guard(db, f"list_{kind}"):
        return list(db.exec(select(model).order_by(model.name)).all())


def add_item(db: Session, kind: str, name: str) -> MetadataItem:
    model = model_for(kind)
    name = _clean_name(name)
    _ensure_unique(db, model, name)
    item = model(name=name)
    with store_guard(db, f"add_{kind}"):
        db.add(item)
        db.commit()
        db.refresh(item)
    return item


def update_item(db: Session, kind: str, item_id: str, name: str) -> MetadataItem:
    model = model_for(kind)
    name = _clean_name(name)
    item = db.get(model, item_id)
    if not item:
        raise RecordNotFound("Item not found")
    _ensure_unique(db, model, name, exclude_id=item_id)
    item.name = name
    with store_guard(db, f"update_{kind}"):
        db.add(item)
        db.commit()
        db.refresh(item)
    return item


def delete_item(db: Session, kind: str, item_id: str) -> None:
    model = model_for(kind)
    item = db.get(model, item_id)
    if not item:
        raise RecordNotFound("Item not found")
    with store_guard(db, f"delete_{kind}"):
        db.delete(item)
        db.commit()


def seed_from_projects(db: Session) -> Dict[str, int]:
    """
    Add every distinct non-blank value found on projects to its metadata list.

    Idempotent: values already present are skipped, so it can be re-run after
    each import. Returns the number of items added per list.
    """
    added: Dict[str, int] = {}
    with store_guard(db, "seed_metadata"):
        for kind, (model, column_name) in METADATA_KINDS.items():
            column = getattr(Project, column_name)
            values = db.exec(select(column).where(column.is_not(None)).distinct()).all()
            existing = set(db.exec(select(model.name)).all())
            new_names = sorted({value.strip() for value in values if value and value.strip()} - existing)
            for name in new_names:
                db.add(model(name=name))
            added[kind] = len(new_names)
        db.commit()
    logger.info("Seeded metadata from projects: %s", added)
    return added
