"""
Session Store Service - Redis-backed conversation storage with in-memory fallback.

Every write refreshes the key's expiry, so a session that sees no activity
for the TTL window disappears without a sweep.
"""
import json
from typing import Dict, Any, Optional, List, Callable
from datetime import datetime, timedelta, timezone
from abc import ABC, abstractmethod

from leadbot.core.config import settings
from leadbot.core.logging import logger


class SessionStore(ABC):
    """Abstract base class for session storage."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Get a session by ID."""
        pass

    @abstractmethod
    def set(self, session_id: str, data: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        """Set a session, refreshing its TTL."""
        pass

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Delete a session."""
        pass

    @abstractmethod
    def exists(self, session_id: str) -> bool:
        """Check if a session exists."""
        pass

    @abstractmethod
    def list_ids(self) -> List[str]:
        """IDs of all live sessions."""
        pass

    def count(self) -> int:
        return len(self.list_ids())

    def list_all(self, limit: int = 100) -> List[Dict[str, Any]]:
        """List live sessions, most recently updated first (for admin use)."""
        sessions = []
        for session_id in self.list_ids():
            data = self.get(session_id)
            if data:
                sessions.append(data)
        sessions.sort(key=lambda s: s.get("last_update_time", ""), reverse=True)
        return sessions[:limit]


class InMemorySessionStore(SessionStore):
    """In-memory session store for development and tests."""

    def __init__(
        self,
        default_ttl_seconds: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._expiry: Dict[str, datetime] = {}
        self._default_ttl = default_ttl_seconds or settings.SESSION_TTL_SECONDS
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _cleanup_expired(self):
        """Remove expired sessions."""
        now = self._clock()
        expired = [k for k, v in self._expiry.items() if v <= now]
        for key in expired:
            self._sessions.pop(key, None)
            self._expiry.pop(key, None)
        if expired:
            logger.debug(f"Expired {len(expired)} idle session(s)")

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        self._cleanup_expired()
        return self._sessions.get(session_id)

    def set(self, session_id: str, data: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        self._sessions[session_id] = data
        self._expiry[session_id] = self._clock() + timedelta(seconds=ttl_seconds or self._default_ttl)

    def delete(self, session_id: str) -> bool:
        if session_id in self._sessions:
            del self._sessions[session_id]
            self._expiry.pop(session_id, None)
            return True
        return False

    def exists(self, session_id: str) -> bool:
        self._cleanup_expired()
        return session_id in self._sessions

    def list_ids(self) -> List[str]:
        self._cleanup_expired()
        return list(self._sessions.keys())


class RedisSessionStore(SessionStore):
    """Redis-backed session store for production."""

    def __init__(self, redis_url: str, default_ttl_seconds: Optional[int] = None):
        import redis
        self._redis = redis.from_url(redis_url, decode_responses=True)
        self._prefix = "leadbot:session:"
        self._default_ttl = default_ttl_seconds or settings.SESSION_TTL_SECONDS

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        data = self._redis.get(self._key(session_id))
        if data:
            return json.loads(data)
        return None

    def set(self, session_id: str, data: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        self._redis.setex(
            self._key(session_id),
            timedelta(seconds=ttl_seconds or self._default_ttl),
            json.dumps(data, default=str)
        )

    def delete(self, session_id: str) -> bool:
        return self._redis.delete(self._key(session_id)) > 0

    def exists(self, session_id: str) -> bool:
        return self._redis.exists(self._key(session_id)) > 0

    def list_ids(self) -> List[str]:
        return [
            key[len(self._prefix):]
            for key in self._redis.scan_iter(match=f"{self._prefix}*")
        ]


# Singleton session store instance
_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get the session store instance (creates if needed)."""
    global _session_store

    if _session_store is not None:
        return _session_store

    # Try Redis first, fall back to in-memory
    if settings.REDIS_URL and settings.APP_ENV != "development":
        try:
            _session_store = RedisSessionStore(settings.REDIS_URL)
            # Test connection
            _session_store._redis.ping()
            logger.info("Using Redis session store")
        except Exception as e:
            logger.warning(f"Failed to connect to Redis, using in-memory store: {e}")
            _session_store = InMemorySessionStore()
    else:
        logger.info("Using in-memory session store (development mode)")
        _session_store = InMemorySessionStore()

    return _session_store
