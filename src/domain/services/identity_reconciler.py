"""
Identity Reconciler - authenticates trusted-header requests.

Makes the local account (existence, profile and group memberships)
consistent with the identity asserted by the upstream proxy, then stores
the principal in the session. Requests whose session already holds a
principal return it without touching the directory.
"""
import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from src.domain.models.errors import (
    DirectoryUnavailable,
    GroupNotFound,
    UnknownPrincipal,
    UserAlreadyExistsError,
)
from src.domain.models.identity_models import (
    DirectoryUser,
    IdentityAssertion,
    Principal,
)
from src.domain.models.mapping_models import AuthenticatorSettings, MappingRuleSet
from src.domain.ports.session_store import SessionStore
from src.domain.ports.user_directory import UserDirectory
from src.domain.services.assertion_builder import HeaderSource, build_assertion
from src.domain.services.config_loader import ConfigLoader
from src.domain.services.role_resolver import AttributeRoleResolver

logger = logging.getLogger(__name__)


def normalize_username(principal_id: str) -> str:
    """Canonical local user name for an asserted principal id."""
    return principal_id.strip().lower()


class IdentityReconciler:
    """Per-request authentication and account reconciliation."""

    def __init__(
        self,
        config_loader: ConfigLoader,
        directory: UserDirectory,
        resolver: Optional[AttributeRoleResolver] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """
        Initialize identity reconciler.

        Args:
            config_loader: Source of the active settings and mapping rules
            directory: Local user directory
            resolver: Attribute role resolver (a default one is created)
            clock: Returns the current time, used for login timestamps
        """
        self.config_loader = config_loader
        self.directory = directory
        self.resolver = resolver or AttributeRoleResolver()
        self._clock = clock

    async def authenticate(self, headers: HeaderSource, session: SessionStore) -> Principal:
        """
        Authenticate a request.

        Args:
            headers: Trusted request headers
            session: Session of the requesting client

        Returns:
            The authenticated principal

        Raises:
            NoIdentityAsserted: If the request carries no trusted identity
            UnknownPrincipal: If the account does not exist and creation is disabled
            DirectoryUnavailable: If the account could not be looked up or created
        """
        principal = await session.get_principal()
        if principal is not None:
            logger.debug(f"{principal.username} already logged in, returning.")
            return principal

        if self.config_loader.poll_due():
            # Reading the source is blocking I/O
            state = await asyncio.to_thread(self.config_loader.state)
        else:
            state = self.config_loader.state()
        settings, rules = state.settings, state.rule_set

        assertion = build_assertion(headers, settings)
        username = normalize_username(assertion.principal_id)

        user, created = await self._lookup_or_create(username, settings)

        if created or settings.update_info:
            user = await self._update_profile(user, assertion)

        if settings.update_last_login:
            await self._record_login(user)

        if created or settings.update_roles:
            await self._assign_roles(user, assertion, rules, settings)

        principal = Principal.from_user(user)
        logger.debug(f"Logging in user {principal.username}")
        await session.set_principal(principal)
        await session.clear_logged_out()
        return principal

    # ============================================
    # LOOKUP / CREATE
    # ============================================

    async def _lookup(self, username: str) -> Optional[DirectoryUser]:
        logger.debug(f"Getting user {username}")
        try:
            user = await self.directory.get_user(username)
        except DirectoryUnavailable:
            logger.error(f"Error getting user {username}")
            raise
        except Exception as e:
            logger.error(f"Error getting user {username}: {e}")
            raise DirectoryUnavailable(f"Lookup of '{username}' failed: {e}") from e

        if user is None:
            logger.debug(f"No user account exists for {username}")
        return user

    async def _lookup_or_create(
        self, username: str, settings: AuthenticatorSettings
    ) -> Tuple[DirectoryUser, bool]:
        """Return the account and whether it was created by this request."""
        user = await self._lookup(username)
        if user is not None:
            return user, False

        if not settings.create_users:
            logger.debug(
                f"Configuration does NOT allow for creation of new user accounts, "
                f"authentication will fail for {username}"
            )
            raise UnknownPrincipal(username)

        logger.info(f"Creating user account for {username}")
        try:
            return await self.directory.create_user(username), True
        except UserAlreadyExistsError:
            logger.debug(f"User {username} was created concurrently, reusing it")
            cause: Optional[Exception] = None
        except Exception as e:
            # The directory could not say why creation failed; the account
            # may still have been created by a concurrent first login
            logger.debug(
                f"Error creating user {username}. Will try to get the user "
                f"(maybe it was already created): {e}"
            )
            cause = e

        user = await self._lookup(username)
        if user is None:
            logger.error(
                f"Error creating user {username}. Got no user after attempted "
                f"to create it (so it probably was not a duplicate)."
            )
            raise DirectoryUnavailable(f"Could not create user '{username}'") from cause
        return user, False

    # ============================================
    # PROFILE
    # ============================================

    async def _update_profile(
        self, user: DirectoryUser, assertion: IdentityAssertion
    ) -> DirectoryUser:
        full_name = assertion.full_name or user.username
        email = assertion.email.lower() if assertion.email else None

        changes = {}
        if full_name != user.full_name:
            logger.debug(f"updating user fullName to '{full_name}'")
            changes["full_name"] = full_name
        else:
            logger.debug(f"new user fullName is same as old one: '{full_name}'")

        if email is not None and email != user.email:
            logger.debug(f"updating user emailAddress to '{email}'")
            changes["email"] = email
        else:
            logger.debug(f"new user emailAddress is same as old one: '{email}'")

        if not changes:
            return user

        updated = replace(user, **changes)
        try:
            return await self.directory.save_user(updated)
        except Exception as e:
            logger.error(f"Couldn't update user {user.username}: {e}")
            return user

    async def _record_login(self, user: DirectoryUser) -> None:
        try:
            await self.directory.record_login(user.username, self._clock())
        except Exception as e:
            logger.error(f"Couldn't record login for {user.username}: {e}")

    # ============================================
    # ROLES
    # ============================================

    async def _assign_roles(
        self,
        user: DirectoryUser,
        assertion: IdentityAssertion,
        rules: MappingRuleSet,
        settings: AuthenticatorSettings,
    ) -> None:
        roles = self.resolver.effective_roles(assertion, rules)

        if not roles:
            logger.debug("No roles specified, not adding any roles...")
        else:
            logger.debug(f"Assigning roles to user {user.username}")

        for role in roles:
            if role in user.groups:
                continue
            logger.debug(f"Assigning {user.username} to role {role}")
            try:
                await self._ensure_group(role, settings)
                await self.directory.add_membership(role, user.username)
            except GroupNotFound:
                logger.warning(
                    f"Attempted to add user {user.username} to role {role} "
                    f"but the role does not exist."
                )
            except Exception as e:
                logger.error(f"Failed to add user {user.username} to role {role}: {e}")

        for group_name in self.resolver.groups_to_purge(assertion, rules, roles, user.groups):
            logger.info(f"Purging {user.username} from role {group_name}")
            try:
                await self.directory.remove_membership(group_name, user.username)
            except Exception as e:
                logger.error(f"Failed to remove user {user.username} from role {group_name}: {e}")

    async def _ensure_group(self, group_name: str, settings: AuthenticatorSettings) -> None:
        group = await self.directory.get_group(group_name)
        if group is not None:
            return
        if not settings.create_groups:
            raise GroupNotFound(group_name)
        logger.info(f"Creating group {group_name}")
        await self.directory.create_group(group_name)
