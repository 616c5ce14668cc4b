"""
User Management Endpoints Module

This module provides user management endpoints. All endpoints require
administrative privileges except /me, which returns the caller's own profile.
"""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from patentflow.api import deps
from patentflow.db.session import get_db
from patentflow.models.user import Role
from patentflow.schemas.auth import SessionUser
from patentflow.schemas.user import BulkUserResult, UserCreate, UserRead, UserUpdate
from patentflow.services import users as user_service

router = APIRouter()


@router.get("", response_model=List[UserRead])
def read_users(
    role: Optional[Role] = None,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.require_admin),
) -> Any:
    """
    Retrieve all users ordered by name, optionally only those holding `role`.

    Only administrators can access this endpoint.
    """
    return user_service.list_users(db, role)


@router.post("", response_model=UserRead)
def create_user(
    *,
    db: Session = Depends(get_db),
    user_in: UserCreate,
    current_user: SessionUser = Depends(deps.require_admin),
) -> Any:
    """
    Create a new user.

    Only administrators can create users. Passwords are stored as bcrypt hashes.

    Raises:
        422: If a user with this email already exists
    """
    return user_service.create_user(db, user_in)


@router.post("/bulk", response_model=BulkUserResult)
def create_users_bulk(
    *,
    db: Session = Depends(get_db),
    users_in: List[UserCreate],
    current_user: SessionUser = Depends(deps.require_admin),
) -> Any:
    """Create several users; rejected ones are reported per email."""
    return user_service.create_users_bulk(db, users_in)


@router.get("/me", response_model=UserRead)
def read_user_me(
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(deps.get_current_user),
) -> Any:
    """
    Get current user's profile.
    """
    return user_service.get_user(db, current_user.id)


@router.patch("/{user_id}", response_model=UserRead)
def update_user(
    *,
    db: Session = Depends(get_db),
    user_id: str,
    user_in: UserUpdate,
    current_user: SessionUser = Depends(deps.require_admin),
) -> Any:
    """
    Rename a user, change their roles or reset their password.

    Role changes take effect at the user's next login.
    """
    return user_service.update_user(db, user_id, user_in)
