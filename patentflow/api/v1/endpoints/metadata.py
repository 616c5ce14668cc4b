"""
Metadata Endpoints Module

Lookup lists used by the forms (clients, processes, countries, document types,
renewal agents). Everyone signed in can read them; only admins edit them.
"""
from typing import List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlmodel import Session

from patentflow.api import deps
from patentflow.db.session import get_db
from patentflow.models.metadata import MetadataRead
from patentflow.schemas.auth import SessionUser
from patentflow.services import metadata as metadata_service

router = APIRouter()


class MetadataIn(BaseModel):
    name: str


@router.get("/{kind}", response_model=List[MetadataRead])
def list_items(
    kind: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.get_current_user),
):
    return metadata_service.list_items(db, kind)


@router.post("/{kind}", response_model=MetadataRead)
def add_item(
    kind: str,
    item_in: MetadataIn,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.require_admin),
):
    return metadata_service.add_item(db, kind, item_in.name)


@router.patch("/{kind}/{item_id}", response_model=MetadataRead)
def rename_item(
    kind: str,
    item_id: str,
    item_in: MetadataIn,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.require_admin),
):
    return metadata_service.update_item(db, kind, item_id, item_in.name)


@router.delete("/{kind}/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(
    kind: str,
    item_id: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.require_admin),
):
    metadata_service.delete_item(db, kind, item_id)
