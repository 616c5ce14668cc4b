"""
Authentication Endpoints Module

This module provides the login, logout and identity endpoints.
The system supports both JWT bearer token authentication and the HTTP-only
session cookie for browser clients.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session

from patentflow.api import deps
from patentflow.core.errors import ValidationFailed
from patentflow.core.security import create_session_token
from patentflow.db.session import get_db
from patentflow.schemas.auth import SessionUser, Token
from patentflow.services import users as user_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=Token)
def login(response: Response, db: Session = Depends(get_db), form_data: OAuth2PasswordRequestForm = Depends()):
    """
    Authenticate a user and issue a session token.

    The token is returned for API clients and also set as the HTTP-only
    session cookie for browser clients.

    Note: OAuth2PasswordRequestForm uses 'username' field, but we treat it as email.

    Raises:
        HTTPException 401: If credentials are invalid (never says which part)
    """
    try:
        user = user_service.authenticate(db, form_data.username, form_data.password)
    except ValidationFailed as exc:
        logger.info("Failed login for %s", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    access_token = create_session_token(user.id, user.email, user.name, user.roles)
    deps.set_session_cookie(response, access_token)
    logger.info("User %s logged in", user.email, extra={"user_id": user.id})
    return Token(access_token=access_token)


@router.api_route("/logout", methods=["GET", "POST"])
def logout(response: Response):
    """
    Clear the session cookie. API clients can simply discard their token.
    """
    deps.clear_session_cookie(response)
    return {"status": "logged out"}


@router.get("/me", response_model=SessionUser)
def read_session(current_user: SessionUser = Depends(deps.get_current_user)):
    """Identity decoded from the verified session."""
    return current_user
