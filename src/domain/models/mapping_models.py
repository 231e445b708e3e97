"""Domain models for the attribute-to-group mapping configuration."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Tuple


@dataclass(frozen=True)
class PurgeRule:
    """
    Groups owned by one identity attribute.

    When a request asserts ``attribute_name``, any of ``group_names`` the
    user holds that the assertion no longer maps to may be revoked.

    Attributes:
        attribute_name: Lower-cased attribute (header) name
        group_names: Groups eligible for removal
    """
    attribute_name: str
    group_names: Tuple[str, ...]


@dataclass(frozen=True)
class MappingRuleSet:
    """
    Parsed, immutable mapping configuration.

    Attributes:
        default_roles: Groups always considered, in configuration order
        watched_attributes: Lower-cased header names carrying role attributes
        attribute_value_to_groups: Lower-cased attribute value -> group names
        purge_rules: Rules governing revocation of stale groups
    """
    default_roles: Tuple[str, ...] = ()
    watched_attributes: FrozenSet[str] = frozenset()
    attribute_value_to_groups: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    purge_rules: Tuple[PurgeRule, ...] = ()

    def __post_init__(self):
        # Freeze the table so a published ruleset can never be mutated
        if not isinstance(self.attribute_value_to_groups, MappingProxyType):
            object.__setattr__(
                self,
                "attribute_value_to_groups",
                MappingProxyType(dict(self.attribute_value_to_groups)),
            )

    def groups_for_value(self, value: str) -> Tuple[str, ...]:
        """Return the groups mapped from an attribute value, or an empty tuple."""
        return self.attribute_value_to_groups.get(value.strip().lower(), ())

    def purge_rule_for(self, attribute_name: str) -> Optional[PurgeRule]:
        """Return the purge rule owning ``attribute_name``, if any."""
        name = attribute_name.strip().lower()
        for rule in self.purge_rules:
            if rule.attribute_name == name:
                return rule
        return None


@dataclass(frozen=True)
class AuthenticatorSettings:
    """
    Reloadable authenticator behaviour flags.

    Attributes:
        create_users: Create local accounts on first login
        update_info: Refresh name/email for existing accounts
        update_roles: Reconcile group memberships for existing accounts
        create_groups: Create mapped groups missing from the directory
        convert_to_utf8: Re-decode latin-1 header values as UTF-8
        update_last_login: Record login timestamps on the directory record
        reload_config: Poll the configuration source for changes
        reload_interval_ms: Minimum time between polls
        remote_user_header: Header carrying the trusted principal id
        full_name_header: Header carrying the display name
        email_header: Header carrying the email address
    """
    create_users: bool = False
    update_info: bool = False
    update_roles: bool = False
    create_groups: bool = False
    convert_to_utf8: bool = False
    update_last_login: bool = False
    reload_config: bool = False
    reload_interval_ms: int = 5000
    remote_user_header: str = "X-Remote-User"
    full_name_header: Optional[str] = None
    email_header: Optional[str] = None


@dataclass(frozen=True)
class ConfigState:
    """
    One published configuration snapshot.

    Replaced wholesale on every poll or reload; readers grab the current
    instance and never observe a partially updated one.

    Attributes:
        rule_set: Active mapping rules
        settings: Active authenticator flags
        source_last_modified: Modification time of the source when loaded
        last_checked_at: When the source was last polled (epoch seconds)
        loaded_at: When this ruleset was parsed (epoch seconds)
    """
    rule_set: MappingRuleSet
    settings: AuthenticatorSettings
    source_last_modified: float
    last_checked_at: float
    loaded_at: float

    @property
    def poll_interval_ms(self) -> int:
        return self.settings.reload_interval_ms
