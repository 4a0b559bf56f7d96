"""Database connections package."""

from autopress.db.postgres import async_session, engine, get_session, init_db

__all__ = ["async_session", "engine", "get_session", "init_db"]
