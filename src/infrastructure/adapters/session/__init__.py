from .jwt_session_store import JwtSessionStore

__all__ = ["JwtSessionStore"]
