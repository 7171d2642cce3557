"""Caching layer for collected package metadata."""

import logging
import os
import time
from collections import OrderedDict
from datetime import timedelta
from typing import Any, Callable, Optional, Protocol

from sqlalchemy import delete
from sqlalchemy.orm import sessionmaker

from depwise.catalog import normalize_name
from depwise.db.models import CacheEntry, utcnow
from depwise.db.session import SessionLocal, session_scope

logger = logging.getLogger(__name__)

# Default freshness threshold: 1 day
CACHE_TTL = int(os.getenv("DEPWISE_CACHE_TTL", "86400"))


def cache_key(namespace: str, name: str) -> str:
    """Namespaced key, e.g. ``pypi:requests`` or ``github:psf/requests``."""
    if namespace == "github":
        return f"{namespace}:{name.lower()}"
    return f"{namespace}:{normalize_name(name)}"


class MetadataCache(Protocol):
    """Key/value store for JSON-serializable collector payloads."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...

    def close(self) -> None: ...


class MemoryCache:
    """In-process cache with per-entry expiry, bounded to ``max_entries``."""

    def __init__(
        self,
        max_entries: int = 1024,
        ttl: int = CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries
        self.ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self._entries[key] = (self._clock() + (self.ttl if ttl is None else ttl), value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def close(self) -> None:
        self.clear()

    def __len__(self) -> int:
        return len(self._entries)


class SqlCache:
    """Cache persisted in the ``cache_entries`` table."""

    def __init__(self, factory: sessionmaker = SessionLocal, ttl: int = CACHE_TTL):
        self.factory = factory
        self.ttl = ttl

    def get(self, key: str) -> Optional[Any]:
        with session_scope(self.factory) as session:
            entry = session.get(CacheEntry, key)
            if entry is None:
                return None
            if entry.is_expired(utcnow()):
                logger.debug(f"Cache entry expired: {key}")
                session.delete(entry)
                return None
            return entry.payload

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        now = utcnow()
        ttl = self.ttl if ttl is None else ttl
        with session_scope(self.factory) as session:
            session.merge(
                CacheEntry(
                    key=key,
                    namespace=key.split(":", 1)[0],
                    payload=value,
                    created_at=now,
                    expires_at=now + timedelta(seconds=ttl),
                )
            )

    def delete(self, key: str) -> None:
        with session_scope(self.factory) as session:
            session.execute(delete(CacheEntry).where(CacheEntry.key == key))

    def clear(self) -> None:
        with session_scope(self.factory) as session:
            session.execute(delete(CacheEntry))

    def purge_expired(self) -> int:
        """Delete expired entries, returning how many were removed."""
        with session_scope(self.factory) as session:
            result = session.execute(delete(CacheEntry).where(CacheEntry.expires_at <= utcnow()))
            return result.rowcount or 0

    def close(self) -> None:
        # Sessions are closed per operation; the engine belongs to depwise.db.session
        pass
