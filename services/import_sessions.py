"""
In-memory store for import previews awaiting confirmation.

Sessions live in this process only and expire after
settings.import_session_ttl_minutes.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import logging

from services.queries import new_id

logger = logging.getLogger(__name__)


class ImportSessionStore:
    def __init__(self, ttl_minutes: int = 30):
        self.ttl = timedelta(minutes=ttl_minutes)
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def purge_expired(self) -> int:
        now = self._now()
        expired = [sid for sid, s in self._sessions.items() if s["expires_at"] <= now]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"Dropped {len(expired)} expired import sessions")
        return len(expired)

    def create(self, data: Dict[str, Any]) -> str:
        self.purge_expired()
        session_id = new_id()
        self._sessions[session_id] = {"data": data, "expires_at": self._now() + self.ttl}
        return session_id

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session["expires_at"] <= self._now():
            del self._sessions[session_id]
            return None
        return session["data"]

    def pop(self, session_id: str) -> Optional[Dict[str, Any]]:
        data = self.get(session_id)
        self._sessions.pop(session_id, None)
        return data

    def clear(self):
        self._sessions.clear()
