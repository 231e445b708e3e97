"""Trusted-header authentication dependencies for FastAPI."""

import logging
from typing import Optional

from fastapi import HTTPException, Request, Response

from src.application.di import get_container
from src.domain.models.errors import (
    ConfigError,
    DirectoryUnavailable,
    NoIdentityAsserted,
    UnknownPrincipal,
)
from src.domain.models.identity_models import Principal

logger = logging.getLogger(__name__)


async def get_user_from_request(request: Request, response: Response) -> Optional[Principal]:
    """
    Authenticate the request from its session or trusted identity headers.

    Session changes are written to ``response`` as a cookie.

    Returns None if the request is not authenticated.
    """
    logger.debug(f"Request made to {request.url} triggered this AuthN check")

    container = get_container()
    session = container.open_session(request)

    try:
        reconciler = await container.get_identity_reconciler()
        principal = await reconciler.authenticate(request.headers, session)
    except NoIdentityAsserted:
        return None
    except UnknownPrincipal as e:
        logger.info(f"Authentication failed: {e}")
        return None
    except DirectoryUnavailable as e:
        logger.error(f"❌ Directory unavailable during authentication: {e}")
        return None
    except ConfigError as e:
        logger.error(f"❌ Authenticator configuration unavailable: {e}")
        return None

    session.apply(
        response,
        container.session_cookie_name,
        secure=container.session_cookie_secure,
    )
    request.state.principal = principal
    return principal


async def require_remote_user(request: Request, response: Response) -> Principal:
    """
    Require an authenticated principal.
    Raises HTTPException if not authenticated.
    """
    principal = await get_user_from_request(request, response)
    if not principal:
        raise HTTPException(
            status_code=401,
            detail="Authentication required. The request carries no recognised trusted identity."
        )
    return principal


async def optional_remote_user(request: Request, response: Response) -> Optional[Principal]:
    """
    Optional authentication - returns None if not authenticated.
    Does not raise exceptions.
    """
    return await get_user_from_request(request, response)
