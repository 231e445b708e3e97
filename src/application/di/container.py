"""Dependency injection container for the application."""

import os
import logging
from datetime import timedelta
from typing import Optional

from fastapi import Request

from src.domain.ports.user_directory import UserDirectory
from src.domain.services.config_loader import ConfigLoader
from src.domain.services.identity_reconciler import IdentityReconciler
from src.domain.services.role_resolver import AttributeRoleResolver
from src.infrastructure.adapters.config import PropertiesFileConfigSource
from src.infrastructure.adapters.postgres import PostgresUserDirectory
from src.infrastructure.adapters.session import JwtSessionStore
from src.infrastructure.adapters.session.jwt_session_store import get_session_secret_key

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "remoteUserAuthenticator.properties"
DEFAULT_SESSION_COOKIE = "remote_user_session"


class Container:
    """
    Dependency injection container.

    This container manages the lifecycle of application dependencies
    and provides a clean way to inject them where needed. Every dependency
    can be passed in explicitly, which is how tests wire in fakes.
    """

    def __init__(
        self,
        config_loader: Optional[ConfigLoader] = None,
        user_directory: Optional[UserDirectory] = None,
        session_secret_key: Optional[str] = None,
        session_cookie_name: Optional[str] = None,
        session_cookie_secure: Optional[bool] = None,
        session_ttl: Optional[timedelta] = None,
    ):
        """Initialize the container."""
        self._config_loader = config_loader
        self._user_directory = user_directory
        self._role_resolver: Optional[AttributeRoleResolver] = None
        self._identity_reconciler: Optional[IdentityReconciler] = None
        self._owns_directory = user_directory is None

        self.session_secret_key = session_secret_key or get_session_secret_key()
        self.session_cookie_name = session_cookie_name or os.getenv(
            "SESSION_COOKIE_NAME", DEFAULT_SESSION_COOKIE
        )
        if session_cookie_secure is None:
            session_cookie_secure = os.getenv("SESSION_COOKIE_SECURE", "true").lower() == "true"
        self.session_cookie_secure = session_cookie_secure
        self.session_ttl = session_ttl or timedelta(
            hours=int(os.getenv("SESSION_TTL_HOURS", "8"))
        )

    def get_config_loader(self) -> ConfigLoader:
        """
        Get the configuration loader.

        The file is read from AUTH_CONFIG_FILE on first use.

        Returns:
            ConfigLoader instance
        """
        if self._config_loader is None:
            path = os.getenv("AUTH_CONFIG_FILE", DEFAULT_CONFIG_FILE)
            self._config_loader = ConfigLoader(PropertiesFileConfigSource(path))
            logger.info(f"✅ ConfigLoader initialized ({path})")

        return self._config_loader

    async def init_user_directory(self) -> UserDirectory:
        """
        Initialize and return the user directory.

        Returns:
            UserDirectory instance
        """
        if self._user_directory is None:
            db_host = os.getenv("DB_HOST", "localhost")
            db_port = int(os.getenv("DB_PORT", "5432"))
            db_name = os.getenv("DB_NAME", "directory_db")
            db_user = os.getenv("DB_USER", "postgres")
            db_password = os.getenv("DB_PASSWORD", "postgres")

            directory = await PostgresUserDirectory.create(
                host=db_host,
                port=db_port,
                database=db_name,
                user=db_user,
                password=db_password,
            )
            await directory.ensure_schema()
            self._user_directory = directory
            logger.info("✅ PostgresUserDirectory initialized")

        return self._user_directory

    def get_role_resolver(self) -> AttributeRoleResolver:
        if self._role_resolver is None:
            self._role_resolver = AttributeRoleResolver()
        return self._role_resolver

    async def get_identity_reconciler(self) -> IdentityReconciler:
        """
        Get the identity reconciler.

        Returns:
            IdentityReconciler instance
        """
        if self._identity_reconciler is None:
            directory = await self.init_user_directory()
            self._identity_reconciler = IdentityReconciler(
                config_loader=self.get_config_loader(),
                directory=directory,
                resolver=self.get_role_resolver(),
            )
            logger.info("✅ IdentityReconciler initialized")

        return self._identity_reconciler

    def open_session(self, request: Request) -> JwtSessionStore:
        """Open the session carried by the request's cookie."""
        return JwtSessionStore(
            token=request.cookies.get(self.session_cookie_name),
            secret_key=self.session_secret_key,
            ttl=self.session_ttl,
        )

    async def close(self):
        """Close all resources."""
        logger.info("🧹 Closing container resources...")

        if self._owns_directory and isinstance(self._user_directory, PostgresUserDirectory):
            await self._user_directory.close()
            logger.info("✅ User directory closed")


_container: Optional[Container] = None


def get_container() -> Container:
    """
    Get the global container instance.

    Returns:
        Container instance
    """
    global _container
    if _container is None:
        _container = Container()
        logger.info("🚀 Container created")
    return _container


def set_container(container: Optional[Container]) -> None:
    """Replace the global container (None resets it)."""
    global _container
    _container = container


async def close_container():
    """Close the global container."""
    global _container
    if _container is not None:
        await _container.close()
        _container = None
        logger.info("✅ Container closed")
