"""Database models and session management."""

from depwise.db.models import Base, CacheEntry
from depwise.db.session import init_db, session_scope

__all__ = ["Base", "CacheEntry", "init_db", "session_scope"]
