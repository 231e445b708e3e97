"""Error taxonomy for the remote user authenticator."""


class AuthenticatorError(Exception):
    """Base class for all authenticator errors."""


class ConfigError(AuthenticatorError):
    """Configuration is malformed or could not be read."""


class NoIdentityAsserted(AuthenticatorError):
    """The trusted identity header is absent or empty."""


class UnknownPrincipal(AuthenticatorError):
    """Lookup missed and account creation is disabled."""

    def __init__(self, username: str):
        super().__init__(f"No local account for '{username}' and user creation is disabled")
        self.username = username


class DirectoryUnavailable(AuthenticatorError):
    """A call into the user directory failed."""


class GroupNotFound(AuthenticatorError):
    """A group named by the mapping rules does not exist in the directory."""

    def __init__(self, group_name: str):
        super().__init__(f"Group '{group_name}' does not exist")
        self.group_name = group_name


class UserAlreadyExistsError(AuthenticatorError):
    """Account creation lost a race with another request for the same user."""

    def __init__(self, username: str):
        super().__init__(f"User '{username}' already exists")
        self.username = username
