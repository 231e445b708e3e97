from .config_source import ConfigSource
from .session_store import SessionStore
from .user_directory import UserDirectory

__all__ = ["ConfigSource", "SessionStore", "UserDirectory"]
