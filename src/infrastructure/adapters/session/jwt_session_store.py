"""Session store backed by a signed JWT cookie."""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Response

from src.domain.models.identity_models import Principal
from src.domain.ports.session_store import SessionStore

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
JWT_ISSUER = "remote-user-authenticator"
SESSION_TTL_HOURS = 8
LOGGED_OUT_CLAIM = "logged_out"


def get_session_secret_key() -> str:
    """Get session signing key from environment variables."""
    secret_key = os.getenv("SESSION_SECRET_KEY")

    if not secret_key:
        logger.warning("⚠️ SESSION_SECRET_KEY not set, using fallback (NOT SECURE FOR PRODUCTION)")
        # Fallback for development only - MUST be set in production
        secret_key = "dev-session-key-CHANGE-IN-PRODUCTION"

    return secret_key


class JwtSessionStore(SessionStore):
    """
    Request-scoped session kept in an HS256 JWT cookie.

    The incoming cookie is decoded once; changes are buffered and written
    back to the response with ``apply``.
    """

    def __init__(
        self,
        token: Optional[str],
        secret_key: str,
        ttl: timedelta = timedelta(hours=SESSION_TTL_HOURS),
    ):
        """
        Initialize session from the incoming cookie.

        Args:
            token: Cookie value, if the client sent one
            secret_key: HMAC signing key
            ttl: Lifetime of newly issued session tokens
        """
        self._secret_key = secret_key
        self._ttl = ttl
        self._claims: Dict[str, Any] = self._decode(token) if token else {}
        self._dirty = False

    def _decode(self, token: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[JWT_ALGORITHM],
                issuer=JWT_ISSUER,
                options={
                    "verify_signature": True,
                    "verify_exp": True,
                    "require": ["exp", "iat", "iss"],
                },
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Session token expired")
            return {}
        except jwt.InvalidTokenError as e:
            logger.warning(f"⚠️ Ignoring invalid session token: {e}")
            return {}

        return {
            key: value
            for key, value in payload.items()
            if key not in ("exp", "iat", "iss")
        }

    async def get_principal(self) -> Optional[Principal]:
        username = self._claims.get("sub")
        if not username or self._claims.get(LOGGED_OUT_CLAIM):
            return None
        return Principal(
            username=username,
            full_name=self._claims.get("name"),
            email=self._claims.get("email"),
        )

    async def set_principal(self, principal: Principal) -> None:
        self._claims["sub"] = principal.username
        self._claims["name"] = principal.full_name
        self._claims["email"] = principal.email
        self._dirty = True

    async def clear_logged_out(self) -> None:
        if self._claims.pop(LOGGED_OUT_CLAIM, None) is not None:
            self._dirty = True

    async def mark_logged_out(self) -> None:
        self._claims = {LOGGED_OUT_CLAIM: True}
        self._dirty = True

    @property
    def modified(self) -> bool:
        return self._dirty

    def encode(self) -> str:
        """Sign the current session claims."""
        now = datetime.now(timezone.utc)
        payload = dict(self._claims)
        payload.update({
            "iat": now,
            "exp": now + self._ttl,
            "iss": JWT_ISSUER,
        })
        return jwt.encode(payload, self._secret_key, algorithm=JWT_ALGORITHM)

    def apply(self, response: Response, cookie_name: str, secure: bool = True) -> None:
        """Write pending session changes to the response cookie."""
        if not self._dirty:
            return
        response.set_cookie(
            key=cookie_name,
            value=self.encode(),
            max_age=int(self._ttl.total_seconds()),
            httponly=True,
            secure=secure,
            samesite="lax",
        )
        self._dirty = False
