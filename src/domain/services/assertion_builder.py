"""Builds an IdentityAssertion from trusted request headers."""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from src.domain.models.errors import NoIdentityAsserted
from src.domain.models.identity_models import IdentityAssertion
from src.domain.models.mapping_models import AuthenticatorSettings
from src.domain.services.mapping_parser import split_list

logger = logging.getLogger(__name__)

HeaderSource = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def convert_to_utf8(value: str) -> str:
    """
    Re-decode a header value that was decoded as latin-1 but sent as UTF-8.

    Values that are not valid UTF-8 byte sequences are returned unchanged.
    """
    try:
        return value.encode("latin-1").decode("utf-8")
    except UnicodeError:
        return value


def _collect_headers(headers: HeaderSource, utf8: bool) -> Dict[str, Tuple[str, str]]:
    """Group headers by lower-cased name as (original name, joined value)."""
    pairs = headers.items() if hasattr(headers, "items") else headers
    collected: Dict[str, Tuple[str, List[str]]] = {}
    for name, value in pairs:
        if value is None:
            continue
        if utf8:
            value = convert_to_utf8(value)
        key = name.strip().lower()
        if key in collected:
            collected[key][1].append(value)
        else:
            collected[key] = (name, [value])
    # Repeated headers are equivalent to one comma-joined header
    return {key: (name, ",".join(values)) for key, (name, values) in collected.items()}


def _header(collected: Dict[str, Tuple[str, str]], name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    entry = collected.get(name.strip().lower())
    if entry is None:
        return None
    value = entry[1].strip()
    return value or None


def build_assertion(headers: HeaderSource, settings: AuthenticatorSettings) -> IdentityAssertion:
    """
    Extract the asserted identity from request headers.

    Args:
        headers: Request headers (mapping or iterable of name/value pairs)
        settings: Active authenticator settings

    Returns:
        IdentityAssertion for the request

    Raises:
        NoIdentityAsserted: If the trusted principal header is absent or empty
    """
    collected = _collect_headers(headers, settings.convert_to_utf8)

    principal_id = _header(collected, settings.remote_user_header)
    if not principal_id:
        logger.debug("Remote user was null or empty, can not perform authentication")
        raise NoIdentityAsserted(f"Header '{settings.remote_user_header}' is missing or empty")

    full_name = _header(collected, settings.full_name_header)
    email = _header(collected, settings.email_header)
    logger.debug(f"Got fullName '{full_name}' for header '{settings.full_name_header}'")
    logger.debug(f"Got emailAddress '{email}' for header '{settings.email_header}'")

    attributes = {
        name: tuple(split_list(value))
        for name, value in collected.values()
    }

    return IdentityAssertion(
        principal_id=principal_id,
        full_name=full_name,
        email=email,
        attributes=attributes,
    )
