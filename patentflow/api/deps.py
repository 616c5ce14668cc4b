"""
API Dependencies Module

This module provides FastAPI dependency functions for authentication and authorization.
It implements a dual authentication strategy supporting both bearer tokens (for API clients)
and the HTTP-only session cookie (for browser clients).

The identity comes from the verified session token alone; no request
parameter can widen what a caller is allowed to do.
"""
from typing import List, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from patentflow.core.config import settings
from patentflow.core.security import verify_session_token
from patentflow.models.user import Role
from patentflow.schemas.auth import SessionUser

# auto_error=False allows us to check the cookie as a fallback
reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login",
    auto_error=False,
)


def session_from_request(request: Request, token: Optional[str] = None) -> Optional[SessionUser]:
    """Bearer token first, then the session cookie. None when neither verifies."""
    return verify_session_token(token or request.cookies.get(settings.SESSION_COOKIE_NAME))


def get_current_user(
    request: Request,
    token: Optional[str] = Depends(reusable_oauth2),
) -> SessionUser:
    """
    Dependency that returns the identity of the verified session.

    Raises:
        HTTPException 401: No token, or the token is malformed, tampered or expired
    """
    user = session_from_request(request, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


class RoleChecker:
    """
    Dependency factory for checking user roles.

    Usage: Depends(RoleChecker([Role.ADMIN, Role.MANAGER]))
    """
    def __init__(self, allowed_roles: List[Role]):
        self.allowed_roles = allowed_roles

    def __call__(self, current_user: SessionUser = Depends(get_current_user)) -> SessionUser:
        # Check if user has at least one of the allowed roles
        if not current_user.has_role(*self.allowed_roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"The user does not have enough privileges. Required roles: {[r.value for r in self.allowed_roles]}"
            )
        return current_user


require_admin = RoleChecker([Role.ADMIN])
require_manager = RoleChecker([Role.ADMIN, Role.MANAGER])


def set_session_cookie(response, token: str) -> None:
    # httponly=True prevents JavaScript access to the cookie (XSS protection)
    # samesite="lax" provides CSRF protection while allowing normal navigation
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=settings.SESSION_EXPIRE_MINUTES * 60,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
        path="/",
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
