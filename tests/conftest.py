"""Shared fakes and fixtures for the authenticator tests."""

from __future__ import annotations
import asyncio
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple
import pytest
from src.domain.models.errors import GroupNotFound, UserAlreadyExistsError
from src.domain.models.identity_models import DirectoryGroup, DirectoryUser, Principal
from src.domain.ports.session_store import SessionStore
from src.domain.ports.user_directory import UserDirectory
from src.domain.services.config_loader import ConfigLoader
from src.infrastructure.adapters.config import DictConfigSource


BASE_CONFIG: Dict[str, str] = {
    "create.users": "true",
    "default.roles": "confluence-users",
    "header.fullname": "X-Full-Name",
    "header.email": "X-Email",
    "header.dynamicroles.attributenames": "SHIB-EP-ENTITLEMENT",
    "header.dynamicroles.staff": "confluence-staff,confluence-editors",
    "header.dynamicroles.student": "confluence-students",
}

KNOWN_GROUPS = (
    "confluence-users",
    "confluence-staff",
    "confluence-editors",
    "confluence-students",
)

WRITE_METHODS = {
    "create_user",
    "save_user",
    "record_login",
    "create_group",
    "add_membership",
    "remove_membership",
}


class FakeUserDirectory(UserDirectory):
    """In-memory directory recording every call it receives."""

    def __init__(self, groups=KNOWN_GROUPS):
        self.users: Dict[str, DirectoryUser] = {}
        self.groups: Set[str] = set(groups)
        self.memberships: Dict[str, Set[str]] = {}
        self.logins: Dict[str, datetime] = {}
        self.calls: List[Tuple[str, tuple]] = []
        self.failures: Dict[str, Exception] = {}

    async def _enter(self, method: str, *args) -> None:
        # Yield so concurrent requests interleave between directory calls
        await asyncio.sleep(0)
        self.calls.append((method, args))
        if method in self.failures:
            raise self.failures[method]

    @property
    def writes(self) -> List[Tuple[str, tuple]]:
        return [call for call in self.calls if call[0] in WRITE_METHODS]

    def add_user(self, username: str, full_name=None, email=None, groups=()) -> None:
        self.users[username] = DirectoryUser(username=username, full_name=full_name, email=email)
        self.memberships[username] = set(groups)

    def _user(self, username: str) -> DirectoryUser:
        user = self.users[username]
        return DirectoryUser(
            username=user.username,
            full_name=user.full_name,
            email=user.email,
            groups=frozenset(self.memberships.get(username, set())),
        )

    async def get_user(self, username: str) -> Optional[DirectoryUser]:
        await self._enter("get_user", username)
        if username not in self.users:
            return None
        return self._user(username)

    async def create_user(self, username: str) -> DirectoryUser:
        await self._enter("create_user", username)
        if username in self.users:
            raise UserAlreadyExistsError(username)
        self.add_user(username)
        return self._user(username)

    async def save_user(self, user: DirectoryUser) -> DirectoryUser:
        await self._enter("save_user", user.username, user.full_name, user.email)
        self.users[user.username] = DirectoryUser(
            username=user.username, full_name=user.full_name, email=user.email
        )
        return self._user(user.username)

    async def record_login(self, username: str, logged_in_at: datetime) -> None:
        await self._enter("record_login", username, logged_in_at)
        self.logins[username] = logged_in_at

    async def get_group(self, group_name: str) -> Optional[DirectoryGroup]:
        await self._enter("get_group", group_name)
        if group_name not in self.groups:
            return None
        return DirectoryGroup(group_name=group_name)

    async def create_group(self, group_name: str) -> DirectoryGroup:
        await self._enter("create_group", group_name)
        self.groups.add(group_name)
        return DirectoryGroup(group_name=group_name)

    async def add_membership(self, group_name: str, username: str) -> None:
        await self._enter("add_membership", group_name, username)
        if group_name not in self.groups:
            raise GroupNotFound(group_name)
        self.memberships.setdefault(username, set()).add(group_name)

    async def remove_membership(self, group_name: str, username: str) -> bool:
        await self._enter("remove_membership", group_name, username)
        held = self.memberships.get(username, set())
        if group_name not in held:
            return False
        held.discard(group_name)
        return True

    async def get_memberships(self, username: str) -> List[str]:
        await self._enter("get_memberships", username)
        return sorted(self.memberships.get(username, set()))


class FakeSessionStore(SessionStore):
    """Session kept in plain attributes."""

    def __init__(self):
        self.principal: Optional[Principal] = None
        self.logged_out = True

    async def get_principal(self) -> Optional[Principal]:
        return self.principal

    async def set_principal(self, principal: Principal) -> None:
        self.principal = principal

    async def clear_logged_out(self) -> None:
        self.logged_out = False

    async def mark_logged_out(self) -> None:
        self.principal = None
        self.logged_out = True


def make_loader(overrides: Optional[Dict[str, Optional[str]]] = None, base=BASE_CONFIG) -> ConfigLoader:
    values = dict(base)
    values.update(overrides or {})
    loader = ConfigLoader(DictConfigSource(values))
    loader.load()
    return loader


@pytest.fixture()
def directory() -> FakeUserDirectory:
    return FakeUserDirectory()


@pytest.fixture()
def session() -> FakeSessionStore:
    return FakeSessionStore()


@pytest.fixture()
def loader_factory():
    return make_loader


@pytest.fixture()
def base_config() -> Dict[str, str]:
    return dict(BASE_CONFIG)


@pytest.fixture()
def session_factory():
    return FakeSessionStore
