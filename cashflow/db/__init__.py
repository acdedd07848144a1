"""Database access helpers."""

from .session import get_db_session, get_session_factory, get_sessionmaker, session_scope

__all__ = ["get_db_session", "get_session_factory", "get_sessionmaker", "session_scope"]
