from .errors import (
    AuthenticatorError,
    ConfigError,
    DirectoryUnavailable,
    GroupNotFound,
    NoIdentityAsserted,
    UnknownPrincipal,
    UserAlreadyExistsError,
)
from .identity_models import (
    DirectoryGroup,
    DirectoryUser,
    IdentityAssertion,
    Principal,
    ResolvedRoles,
)
from .mapping_models import (
    AuthenticatorSettings,
    ConfigState,
    MappingRuleSet,
    PurgeRule,
)

__all__ = [
    "AuthenticatorError",
    "ConfigError",
    "DirectoryUnavailable",
    "GroupNotFound",
    "NoIdentityAsserted",
    "UnknownPrincipal",
    "UserAlreadyExistsError",
    "DirectoryGroup",
    "DirectoryUser",
    "IdentityAssertion",
    "Principal",
    "ResolvedRoles",
    "AuthenticatorSettings",
    "ConfigState",
    "MappingRuleSet",
    "PurgeRule",
]
