"""
Metadata Model Module

This module defines the small name lists used to populate dropdowns:
clients, processes, countries, document types and renewal agents. They are
shared resources visible to every authenticated user; only admins modify them.
"""
from typing import Dict, Optional, Type
from sqlmodel import SQLModel, Field
import uuid

from datetime import datetime, timezone


class MetadataItem(SQLModel):
    """
    Common shape of every metadata list entry.

    Attributes:
        id: Unique identifier (UUID) automatically generated for each item
        name: Display name, trimmed and unique within its list (required)
        created_at: ISO timestamp of when the item was created
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(nullable=False, index=True, unique=True)
    created_at: Optional[str] = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class Client(MetadataItem, table=True):
    __tablename__ = "clients"


class Process(MetadataItem, table=True):
    __tablename__ = "processes"


class Country(MetadataItem, table=True):
    __tablename__ = "countries"


class DocumentType(MetadataItem, table=True):
    __tablename__ = "document_types"


class RenewalAgent(MetadataItem, table=True):
    __tablename__ = "renewal_agents"


# URL kind -> (table model, Project column it is seeded from)
METADATA_KINDS: Dict[str, tuple[Type[MetadataItem], str]] = {
    "clients": (Client, "client_name"),
    "processes": (Process, "process"),
    "countries": (Country, "country"),
    "document-types": (DocumentType, "document_type"),
    "renewal-agents": (RenewalAgent, "renewal_agent"),
}


class MetadataRead(SQLModel):
    id: str
    name: str
    created_at: Optional[str] = None
