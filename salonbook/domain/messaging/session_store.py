"""
WhatsApp session bookkeeping.

Tracks which tenants have a WAHA session running, keyed by user id. The
in-memory store suits a single worker; the Redis store is shared between
workers and survives restarts.
"""

import json
import logging
from threading import Lock
from typing import Optional

import redis

from ...config import REDIS_URL, SESSION_STORE_BACKEND
from ...utils.dates import utcnow

logger = logging.getLogger(__name__)


def session_name_for(user_id: int) -> str:
    return f"user_{user_id}"


def user_id_from_session(session_name: Optional[str]) -> Optional[int]:
    """Inverse of session_name_for; None for names we did not create"""
    if not session_name or not session_name.startswith("user_"):
        return None
    try:
        return int(session_name[len("user_"):])
    except ValueError:
        return None


class SessionStore:
    """Interface shared by the store backends"""

    def get(self, user_id: int) -> Optional[dict]:
        raise NotImplementedError

    def set(self, user_id: int, session_name: str) -> dict:
        raise NotImplementedError

    def delete(self, user_id: int) -> None:
        raise NotImplementedError

    def has(self, user_id: int) -> bool:
        return self.get(user_id) is not None

    @staticmethod
    def _record(session_name: str) -> dict:
        return {"session": session_name, "started_at": utcnow().isoformat()}


class InMemorySessionStore(SessionStore):
    def __init__(self):
        self._sessions: dict[int, dict] = {}
        self._lock = Lock()

    def get(self, user_id: int) -> Optional[dict]:
        with self._lock:
            return self._sessions.get(user_id)

    def set(self, user_id: int, session_name: str) -> dict:
        record = self._record(session_name)
        with self._lock:
            self._sessions[user_id] = record
        return record

    def delete(self, user_id: int) -> None:
        with self._lock:
            self._sessions.pop(user_id, None)


class RedisSessionStore(SessionStore):
    KEY_PREFIX = "wa_session"

    def __init__(self, client: redis.Redis):
        self.client = client

    def _key(self, user_id: int) -> str:
        return f"{self.KEY_PREFIX}:{user_id}"

    def get(self, user_id: int) -> Optional[dict]:
        raw = self.client.get(self._key(user_id))
        return json.loads(raw) if raw else None

    def set(self, user_id: int, session_name: str) -> dict:
        record = self._record(session_name)
        self.client.set(self._key(user_id), json.dumps(record))
        return record

    def delete(self, user_id: int) -> None:
        self.client.delete(self._key(user_id))


_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """FastAPI dependency returning the process-wide session store"""
    global _store
    if _store is None:
        if SESSION_STORE_BACKEND == "redis":
            logger.info("📡 WhatsApp sessions tracked in Redis")
            _store = RedisSessionStore(redis.from_url(REDIS_URL, decode_responses=True))
        else:
            logger.info("🧠 WhatsApp sessions tracked in memory")
            _store = InMemorySessionStore()
    return _store
