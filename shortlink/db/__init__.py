"""
Database module with abstraction layer.

This module provides:
- LinkStore interface: Abstract base class for durable store implementations
- SQLLinkStore: SQLModel/SQLAlchemy implementation (default)
- InMemoryLinkStore: Process-local implementation for tests and development
- Engine and session helpers for the SQL store
"""

from shortlink.db.interface import LinkQuery, LinkStore
from shortlink.db.memory_store import InMemoryLinkStore
from shortlink.db.session import build_engine, build_session_maker, init_db
from shortlink.db.sql_store import SQLLinkStore

__all__ = [
    "InMemoryLinkStore",
    "LinkQuery",
    "LinkStore",
    "SQLLinkStore",
    "build_engine",
    "build_session_maker",
    "init_db",
]
