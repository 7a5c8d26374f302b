"""
Session snapshot cache for the MIZAN API.

The engine treats session storage as an opaque key-value collaborator:
get(id) -> snapshot, put(id, snapshot). This implementation keeps
snapshots in a bounded, thread-safe TTLCache; expired or evicted
sessions simply read back as None.
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from cachetools import TTLCache

from mizan.models import RawRecord
from mizan.preprocess import FieldMapping


@dataclass(frozen=True)
class SessionSnapshot:
    """Uploaded records and their mapping, immutable once stored."""
    session_id: str
    records: tuple[RawRecord, ...]
    mapping: FieldMapping
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def columns(self) -> list[str]:
        seen = {}
        for record in self.records:
            for column in record.values:
                seen.setdefault(column, None)
        return list(seen)


class SessionCache:
    """Session store with size and TTL bounds. Thread-safe."""

    def __init__(self, maxsize: int = 64, ttl: int = 7200):
        self._lock = threading.Lock()
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)

    def get(self, session_id: str) -> SessionSnapshot | None:
        """Snapshot for a session id. Returns None if not found/expired."""
        with self._lock:
            return self._cache.get(session_id)

    def put(self, session_id: str, snapshot: SessionSnapshot) -> None:
        """Store or replace a session snapshot."""
        with self._lock:
            self._cache[session_id] = snapshot

    def invalidate(self, session_id: str | None = None) -> None:
        """Drop one session, or all sessions when no id is given."""
        with self._lock:
            if session_id is None:
                self._cache.clear()
            else:
                self._cache.pop(session_id, None)

    def stats(self) -> dict:
        """Return cache statistics for monitoring."""
        with self._lock:
            return {
                "size": len(self._cache),
                "maxsize": self._cache.maxsize,
                "ttl": self._cache.ttl,
            }
