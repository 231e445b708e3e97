from .postgres_user_directory import PostgresUserDirectory

__all__ = [
    "PostgresUserDirectory",
]
