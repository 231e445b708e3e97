"""
Parsing of raw authenticator settings into immutable configuration.

Every list-valued setting and every multi-valued header is tokenized with
the same separator grammar: commas, semicolons and whitespace.
"""
import logging
import re
from typing import Dict, List, Mapping, Optional, Tuple

from src.domain.models.errors import ConfigError
from src.domain.models.mapping_models import (
    AuthenticatorSettings,
    MappingRuleSet,
    PurgeRule,
)

logger = logging.getLogger(__name__)

SEPARATOR = re.compile(r"[,;\s]+")

CREATE_USERS = "create.users"
UPDATE_INFO = "update.info"
UPDATE_ROLES = "update.roles"
CREATE_GROUPS = "create.groups"
CONVERT_TO_UTF8 = "convert.to.utf8"
UPDATE_LAST_LOGIN = "update.lastlogin"
RELOAD_CONFIG = "reload.config"
RELOAD_CONFIG_CHECK_INTERVAL = "reload.config.check.interval"
DEFAULT_ROLES = "default.roles"
REMOTE_USER_HEADER_NAME_PROPERTY = "header.remoteuser"
FULLNAME_HEADER_NAME_PROPERTY = "header.fullname"
EMAIL_HEADER_NAME_PROPERTY = "header.email"
ROLES_ATTRIB_NAMES = "header.dynamicroles.attributenames"
ROLES_ATTRIB_PREFIX = "header.dynamicroles."
PURGE_ROLES_PREFIX = "purge.roles."

DEFAULT_RELOAD_INTERVAL_MS = 5000
DEFAULT_REMOTE_USER_HEADER = "X-Remote-User"


def split_list(value: Optional[str]) -> List[str]:
    """
    Split a separated list, dropping blank entries.

    Args:
        value: Raw setting or header value

    Returns:
        Trimmed, non-empty tokens in their original order
    """
    if not value:
        return []
    return [token for token in SEPARATOR.split(value.strip()) if token]


def parse_bool(value: Optional[str]) -> bool:
    """Only a case-insensitive 'true' is true; anything else is false."""
    return value is not None and value.strip().lower() == "true"


def _unique(items: List[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(items))


def _header_name(raw: Mapping[str, Optional[str]], key: str) -> Optional[str]:
    value = raw.get(key)
    if value is None or not value.strip():
        return None
    return value.strip()


def parse_rule_set(raw: Mapping[str, Optional[str]]) -> MappingRuleSet:
    """
    Build a MappingRuleSet from raw key/value settings.

    Args:
        raw: Raw configuration

    Returns:
        Parsed rule set

    Raises:
        ConfigError: If a mapping or purge rule names no groups
    """
    default_roles = _unique(split_list(raw.get(DEFAULT_ROLES)))
    for role in default_roles:
        logger.debug(f"Adding role {role} to list of default user roles")

    watched = frozenset(name.lower() for name in split_list(raw.get(ROLES_ATTRIB_NAMES)))
    for attrib in sorted(watched):
        logger.debug(f"Reading dynamic attribute: {attrib}")

    mappings: Dict[str, Tuple[str, ...]] = {}
    purge_rules: Dict[str, PurgeRule] = {}

    for prop, value in raw.items():
        key = prop.strip().lower()

        if key.startswith(ROLES_ATTRIB_PREFIX) and key != ROLES_ATTRIB_NAMES:
            attribute_value = key[len(ROLES_ATTRIB_PREFIX):]
            if not attribute_value:
                continue
            groups = _unique(split_list(value))
            if not groups:
                raise ConfigError(f"Role mapping '{prop}' does not name any group")
            # Last write wins for the same attribute value
            mappings[attribute_value] = groups
            logger.debug(f"Found role mapping declared as {prop}")

        elif key.startswith(PURGE_ROLES_PREFIX):
            attribute_name = key[len(PURGE_ROLES_PREFIX):]
            if not attribute_name:
                continue
            groups = _unique(split_list(value))
            if not groups:
                raise ConfigError(f"Purge rule '{prop}' does not name any group")
            purge_rules[attribute_name] = PurgeRule(attribute_name=attribute_name, group_names=groups)
            logger.debug(f"Found purge rule declared as {prop}")

    return MappingRuleSet(
        default_roles=default_roles,
        watched_attributes=watched,
        attribute_value_to_groups=mappings,
        purge_rules=tuple(purge_rules[name] for name in sorted(purge_rules)),
    )


def parse_settings(raw: Mapping[str, Optional[str]]) -> AuthenticatorSettings:
    """
    Build AuthenticatorSettings from raw key/value settings.

    Raises:
        ConfigError: If the reload interval is not a non-negative integer
    """
    interval_raw = raw.get(RELOAD_CONFIG_CHECK_INTERVAL)
    if interval_raw is None or not interval_raw.strip():
        interval = DEFAULT_RELOAD_INTERVAL_MS
    else:
        try:
            interval = int(interval_raw.strip())
        except ValueError as e:
            raise ConfigError(
                f"{RELOAD_CONFIG_CHECK_INTERVAL} must be an integer, got '{interval_raw}'"
            ) from e
        if interval < 0:
            raise ConfigError(f"{RELOAD_CONFIG_CHECK_INTERVAL} must not be negative")

    settings = AuthenticatorSettings(
        create_users=parse_bool(raw.get(CREATE_USERS)),
        update_info=parse_bool(raw.get(UPDATE_INFO)),
        update_roles=parse_bool(raw.get(UPDATE_ROLES)),
        create_groups=parse_bool(raw.get(CREATE_GROUPS)),
        convert_to_utf8=parse_bool(raw.get(CONVERT_TO_UTF8)),
        update_last_login=parse_bool(raw.get(UPDATE_LAST_LOGIN)),
        reload_config=parse_bool(raw.get(RELOAD_CONFIG)),
        reload_interval_ms=interval,
        remote_user_header=_header_name(raw, REMOTE_USER_HEADER_NAME_PROPERTY) or DEFAULT_REMOTE_USER_HEADER,
        full_name_header=_header_name(raw, FULLNAME_HEADER_NAME_PROPERTY),
        email_header=_header_name(raw, EMAIL_HEADER_NAME_PROPERTY),
    )

    logger.debug(
        f"Authenticator settings: create_users={settings.create_users}, "
        f"update_info={settings.update_info}, update_roles={settings.update_roles}, "
        f"reload_config={settings.reload_config} ({settings.reload_interval_ms} ms)"
    )
    return settings


def parse_config(
    raw: Mapping[str, Optional[str]]
) -> Tuple[AuthenticatorSettings, MappingRuleSet]:
    """Parse settings and mapping rules from the same raw configuration."""
    return parse_settings(raw), parse_rule_set(raw)
