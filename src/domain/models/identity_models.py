"""Domain models for asserted identities and directory principals."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Iterator, Mapping, Optional, Tuple


@dataclass(frozen=True)
class IdentityAssertion:
    """
    Identity asserted by the upstream proxy for a single request.

    Attributes:
        principal_id: Raw trusted principal id
        full_name: Display name header value, if any
        email: Email header value, if any
        attributes: Header name -> raw tokens split from its value
    """
    principal_id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    attributes: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedRoles:
    """Deduplicated set of group names a principal should hold."""
    groups: FrozenSet[str] = frozenset()

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.groups))

    def __contains__(self, group_name: object) -> bool:
        return group_name in self.groups

    def __len__(self) -> int:
        return len(self.groups)

    def union(self, other: "ResolvedRoles") -> "ResolvedRoles":
        return ResolvedRoles(self.groups | other.groups)


@dataclass(frozen=True)
class DirectoryUser:
    """
    A local account as stored by the user directory.

    Attributes:
        username: Canonical (lower-cased) user name
        full_name: Display name
        email: Email address
        groups: Names of groups the user belongs to
        last_login_at: Most recent recorded login
        previous_login_at: Login before the most recent one
    """
    username: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    groups: FrozenSet[str] = frozenset()
    last_login_at: Optional[datetime] = None
    previous_login_at: Optional[datetime] = None


@dataclass(frozen=True)
class DirectoryGroup:
    """A local group."""
    group_name: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Principal:
    """Authenticated identity held by the session."""
    username: str
    full_name: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_user(cls, user: DirectoryUser) -> "Principal":
        return cls(username=user.username, full_name=user.full_name, email=user.email)
