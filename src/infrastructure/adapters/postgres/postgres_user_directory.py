"""PostgreSQL implementation of the UserDirectory port."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

import asyncpg
from asyncpg import Pool

from src.domain.models.errors import (
    DirectoryUnavailable,
    GroupNotFound,
    UserAlreadyExistsError,
)
from src.domain.models.identity_models import DirectoryGroup, DirectoryUser
from src.domain.ports.user_directory import UserDirectory

logger = logging.getLogger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS directory_users (
        username TEXT PRIMARY KEY,
        full_name TEXT,
        email TEXT,
        last_login_at TIMESTAMPTZ,
        previous_login_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS directory_groups (
        group_name TEXT PRIMARY KEY,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS directory_memberships (
        group_name TEXT NOT NULL REFERENCES directory_groups (group_name) ON DELETE CASCADE,
        username TEXT NOT NULL REFERENCES directory_users (username) ON DELETE CASCADE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (group_name, username)
    );
"""

# Name Postgres gives the membership user foreign key declared in SCHEMA
MEMBERSHIP_USER_FK = "directory_memberships_username_fkey"

USER_COLUMNS = """
    u.username, u.full_name, u.email, u.last_login_at, u.previous_login_at,
    COALESCE(
        (SELECT array_agg(m.group_name ORDER BY m.group_name)
         FROM directory_memberships m WHERE m.username = u.username),
        '{}'
    ) AS groups
"""


class PostgresUserDirectory(UserDirectory):
    """
    PostgreSQL implementation of the UserDirectory port.

    Driver and connection errors are surfaced as DirectoryUnavailable.
    """

    def __init__(self, pool: Pool):
        """
        Initialize the directory.

        Args:
            pool: AsyncPG connection pool
        """
        self.pool = pool

    @classmethod
    async def create(
        cls,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        min_size: int = 2,
        max_size: int = 10,
    ) -> "PostgresUserDirectory":
        """
        Create a new directory with its own connection pool.

        Args:
            host: Database host
            port: Database port
            database: Database name
            user: Database user
            password: Database password
            min_size: Minimum pool size
            max_size: Maximum pool size

        Returns:
            PostgresUserDirectory instance
        """
        pool = await asyncpg.create_pool(
            host=host,
            port=port,
            database=database,
            user=user,
            password=password,
            min_size=min_size,
            max_size=max_size,
            command_timeout=60,
        )
        return cls(pool)

    async def close(self):
        """Close the connection pool."""
        await self.pool.close()

    async def ensure_schema(self) -> None:
        """Create the directory tables if they do not exist."""
        async with self._connection() as conn:
            await conn.execute(SCHEMA)
        logger.info("✅ Directory schema ready")

    @asynccontextmanager
    async def _connection(self):
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"❌ Directory call failed: {e}")
            raise DirectoryUnavailable(str(e)) from e

    # ============================================
    # USERS
    # ============================================

    async def get_user(self, username: str) -> Optional[DirectoryUser]:
        """Get a user with group memberships."""
        query = f"""
            SELECT {USER_COLUMNS}
            FROM directory_users u
            WHERE u.username = $1
        """
        async with self._connection() as conn:
            row = await conn.fetchrow(query, username)
            if not row:
                return None
            return self._row_to_user(row)

    async def create_user(self, username: str) -> DirectoryUser:
        """Create a new account."""
        query = """
            INSERT INTO directory_users (username)
            VALUES ($1)
            RETURNING username, full_name, email, last_login_at, previous_login_at,
                      '{}'::TEXT[] AS groups
        """
        async with self._connection() as conn:
            try:
                row = await conn.fetchrow(query, username)
            except asyncpg.UniqueViolationError as e:
                raise UserAlreadyExistsError(username) from e
            return self._row_to_user(row)

    async def save_user(self, user: DirectoryUser) -> DirectoryUser:
        """Persist full name and email."""
        query = """
            UPDATE directory_users
            SET full_name = $2, email = $3, updated_at = NOW()
            WHERE username = $1
        """
        async with self._connection() as conn:
            result = await conn.execute(query, user.username, user.full_name, user.email)
            if result != "UPDATE 1":
                raise DirectoryUnavailable(f"User '{user.username}' vanished during update")
            return user

    async def record_login(self, username: str, logged_in_at: datetime) -> None:
        """Record a login timestamp."""
        query = """
            UPDATE directory_users
            SET previous_login_at = last_login_at, last_login_at = $2
            WHERE username = $1
        """
        async with self._connection() as conn:
            await conn.execute(query, username, logged_in_at)

    def _row_to_user(self, row) -> DirectoryUser:
        """Convert database row to DirectoryUser."""
        return DirectoryUser(
            username=row['username'],
            full_name=row['full_name'],
            email=row['email'],
            groups=frozenset(row['groups'] or ()),
            last_login_at=row['last_login_at'],
            previous_login_at=row['previous_login_at'],
        )

    # ============================================
    # GROUPS AND MEMBERSHIPS
    # ============================================

    async def get_group(self, group_name: str) -> Optional[DirectoryGroup]:
        """Get group by name."""
        query = """
            SELECT group_name, created_at
            FROM directory_groups
            WHERE group_name = $1
        """
        async with self._connection() as conn:
            row = await conn.fetchrow(query, group_name)
            if not row:
                return None
            return DirectoryGroup(group_name=row['group_name'], created_at=row['created_at'])

    async def create_group(self, group_name: str) -> DirectoryGroup:
        """Create a group, returning the existing one on conflict."""
        query = """
            INSERT INTO directory_groups (group_name)
            VALUES ($1)
            ON CONFLICT (group_name) DO UPDATE SET group_name = EXCLUDED.group_name
            RETURNING group_name, created_at
        """
        async with self._connection() as conn:
            row = await conn.fetchrow(query, group_name)
            return DirectoryGroup(group_name=row['group_name'], created_at=row['created_at'])

    async def add_membership(self, group_name: str, username: str) -> None:
        """Add a user to a group."""
        query = """
            INSERT INTO directory_memberships (group_name, username)
            VALUES ($1, $2)
            ON CONFLICT (group_name, username) DO NOTHING
        """
        async with self._connection() as conn:
            try:
                await conn.execute(query, group_name, username)
            except asyncpg.ForeignKeyViolationError as e:
                if getattr(e, "constraint_name", None) == MEMBERSHIP_USER_FK:
                    raise DirectoryUnavailable(f"User '{username}' does not exist") from e
                raise GroupNotFound(group_name) from e

    async def remove_membership(self, group_name: str, username: str) -> bool:
        """Remove a user from a group."""
        query = """
            DELETE FROM directory_memberships
            WHERE group_name = $1 AND username = $2
        """
        async with self._connection() as conn:
            result = await conn.execute(query, group_name, username)
            return result == "DELETE 1"

    async def get_memberships(self, username: str) -> List[str]:
        """Get names of groups a user belongs to."""
        query = """
            SELECT group_name
            FROM directory_memberships
            WHERE username = $1
            ORDER BY group_name ASC
        """
        async with self._connection() as conn:
            rows = await conn.fetch(query, username)
            return [row['group_name'] for row in rows]
