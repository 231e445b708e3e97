"""Authentication routes for trusted-header sessions."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from src.application.di import get_container
from src.domain.models.identity_models import Principal
from src.middleware.remote_user_auth import optional_remote_user, require_remote_user

logger = logging.getLogger(__name__)
router = APIRouter()


# ============================================================================
# MODELS
# ============================================================================

class UserInfoResponse(BaseModel):
    username: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    authenticated: bool = True


class AuthStatusResponse(BaseModel):
    authenticated: bool
    username: Optional[str] = None


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.get("/auth/me", response_model=UserInfoResponse)
async def get_current_user(principal: Principal = Depends(require_remote_user)):
    """
    Get the authenticated principal.

    The first request of a session reconciles the local account with the
    trusted headers; later requests are served from the session cookie.
    """
    return UserInfoResponse(
        username=principal.username,
        full_name=principal.full_name,
        email=principal.email,
    )


@router.get("/auth/status", response_model=AuthStatusResponse)
async def get_auth_status(principal: Optional[Principal] = Depends(optional_remote_user)):
    """Report whether the request is authenticated, without failing."""
    if principal is None:
        return AuthStatusResponse(authenticated=False)
    return AuthStatusResponse(authenticated=True, username=principal.username)


@router.post("/auth/logout", response_model=AuthStatusResponse)
async def logout(request: Request, response: Response):
    """Mark the session as logged out."""
    container = get_container()
    session = container.open_session(request)
    principal = await session.get_principal()

    await session.mark_logged_out()
    session.apply(response, container.session_cookie_name, secure=container.session_cookie_secure)

    if principal:
        logger.info(f"User {principal.username} logged out")
    return AuthStatusResponse(authenticated=False)
