"""
User Model Module

This module defines the User model and Role enumeration for authentication
and authorization throughout the application.
"""
from enum import Enum
from typing import Iterable, List, Optional
from sqlmodel import SQLModel, Field, JSON, Column
import uuid
from datetime import datetime, timezone


class Role(str, Enum):
    """
    Enumeration of user roles.

    - ADMIN: manages users and metadata, sees every project
    - MANAGER: allocates work, bulk edits, sees every project
    - QA: reviews processed projects assigned to them
    - CASE_MANAGER: answers client queries on projects they manage
    - PROCESSOR: works the projects assigned to them

    A user may hold several roles; the highest one (see ROLE_PRECEDENCE)
    selects the default dashboard and the default query scope.
    """
    ADMIN = "Admin"
    MANAGER = "Manager"
    PROCESSOR = "Processor"
    QA = "QA"
    CASE_MANAGER = "Case Manager"


# Highest first
ROLE_PRECEDENCE: List[Role] = [Role.ADMIN, Role.MANAGER, Role.QA, Role.CASE_MANAGER, Role.PROCESSOR]


def highest_role(roles: Iterable[Role]) -> Role:
    """Return the most privileged role of a non-empty role set."""
    held = {Role(role) for role in roles}
    if not held:
        raise ValueError("A user must hold at least one role")
    return next(role for role in ROLE_PRECEDENCE if role in held)


class User(SQLModel, table=True):
    """
    User model representing authenticated users in the system.

    Attributes:
        id: Unique identifier (UUID) automatically generated for each user
        email: Login address, stored lower-case (required, unique, indexed)
        password: bcrypt hash; the plain-text password is never stored
        name: Display name; projects reference processors/QA/case managers by it
        roles: Non-empty list of Role values, stored as a JSON array
        created_at: ISO timestamp when the user account was created
    """
    __tablename__ = "users"

    # Primary key - auto-generated UUID for global uniqueness
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    # Authentication fields
    email: str = Field(unique=True, index=True, nullable=False)
    password: Optional[str] = None  # Hashed password (bcrypt)

    name: str = Field(nullable=False, index=True)

    # Authorization - stored as JSON array in database
    roles: List[Role] = Field(default=[Role.PROCESSOR], sa_column=Column(JSON))

    # Audit timestamp
    created_at: Optional[str] = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def highest_role(self) -> Role:
        return highest_role(self.roles)
