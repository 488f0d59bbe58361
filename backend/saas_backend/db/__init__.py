"""Database package"""

from saas_backend.db.session import AsyncSessionLocal, engine, get_db, make_session_factory

__all__ = ["AsyncSessionLocal", "engine", "get_db", "make_session_factory"]
