"""Port interface for the per-request session."""

from abc import ABC, abstractmethod
from typing import Optional

from src.domain.models.identity_models import Principal


class SessionStore(ABC):
    """Session holding the authenticated principal between requests."""

    @abstractmethod
    async def get_principal(self) -> Optional[Principal]:
        """Return the authenticated principal, or None if not logged in."""
        pass

    @abstractmethod
    async def set_principal(self, principal: Principal) -> None:
        """Store the authenticated principal."""
        pass

    @abstractmethod
    async def clear_logged_out(self) -> None:
        """Clear the logged-out marker."""
        pass

    @abstractmethod
    async def mark_logged_out(self) -> None:
        """Drop the principal and set the logged-out marker."""
        pass
