"""Port interface for the local user directory."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from src.domain.models.identity_models import DirectoryGroup, DirectoryUser


class UserDirectory(ABC):
    """
    Repository interface for local users, groups and memberships.

    Implementations raise ``DirectoryUnavailable`` when the backend cannot
    be reached or a call fails unexpectedly.
    """

    @abstractmethod
    async def get_user(self, username: str) -> Optional[DirectoryUser]:
        """
        Get a user together with their group memberships.

        Args:
            username: Canonical user name

        Returns:
            DirectoryUser or None if no account exists
        """
        pass

    @abstractmethod
    async def create_user(self, username: str) -> DirectoryUser:
        """
        Create a new account.

        Args:
            username: Canonical user name

        Returns:
            Created user

        Raises:
            UserAlreadyExistsError: If the account already exists
        """
        pass

    @abstractmethod
    async def save_user(self, user: DirectoryUser) -> DirectoryUser:
        """
        Persist a user's full name and email.

        Args:
            user: User carrying the new profile values

        Returns:
            Stored user
        """
        pass

    @abstractmethod
    async def record_login(self, username: str, logged_in_at: datetime) -> None:
        """
        Record a login, shifting the previous last login into place.

        Args:
            username: Canonical user name
            logged_in_at: Login timestamp
        """
        pass

    @abstractmethod
    async def get_group(self, group_name: str) -> Optional[DirectoryGroup]:
        """
        Get group by name.

        Args:
            group_name: Group name

        Returns:
            DirectoryGroup or None if not found
        """
        pass

    @abstractmethod
    async def create_group(self, group_name: str) -> DirectoryGroup:
        """
        Create a group. Creating an existing group returns it unchanged.

        Args:
            group_name: Group name

        Returns:
            Created or existing group
        """
        pass

    @abstractmethod
    async def add_membership(self, group_name: str, username: str) -> None:
        """
        Add a user to a group. Adding an existing membership is a no-op.

        Raises:
            GroupNotFound: If the group does not exist
            DirectoryUnavailable: If the user does not exist
        """
        pass

    @abstractmethod
    async def remove_membership(self, group_name: str, username: str) -> bool:
        """
        Remove a user from a group.

        Returns:
            True if a membership was removed
        """
        pass

    @abstractmethod
    async def get_memberships(self, username: str) -> List[str]:
        """Get the names of all groups a user belongs to."""
        pass
