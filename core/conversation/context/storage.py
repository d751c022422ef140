"""
Session storage for guided-flow engines.

Sessions are held in process memory as engine snapshots, so every load goes
through FlowEngine.restore and its consistency checks. Entries expire after
a configurable idle period.
"""

import logging
import threading
from typing import Dict, Any, Optional, Tuple
from datetime import datetime, timedelta, timezone
from dataclasses import dataclass

from config import settings

logger = logging.getLogger(__name__)


@dataclass
class StorageConfig:
    """Configuration for session storage"""
    max_sessions: int = 1000
    session_ttl: timedelta = timedelta(minutes=30)

    @classmethod
    def from_settings(cls) -> 'StorageConfig':
        return cls(
            max_sessions=settings.MAX_SESSIONS,
            session_ttl=timedelta(minutes=settings.SESSION_TTL_MINUTES),
        )


class SessionStorage:
    """
    In-memory store of flow snapshots keyed by session id.

    The least recently written session is evicted once max_sessions is
    exceeded.
    """

    def __init__(self, config: Optional[StorageConfig] = None):
        self.config = config or StorageConfig.from_settings()
        self._sessions: Dict[str, Tuple[Dict[str, Any], datetime]] = {}
        self._lock = threading.Lock()

    def save(self, session_id: str, snapshot: Dict[str, Any]) -> None:
        """Store the latest snapshot for a session"""
        with self._lock:
            self._sessions[session_id] = (snapshot, datetime.now(timezone.utc))
            if len(self._sessions) > self.config.max_sessions:
                oldest = min(self._sessions, key=lambda sid: self._sessions[sid][1])
                del self._sessions[oldest]
                logger.info(f"Session storage full, evicted session {oldest}")

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        """
        Load a session snapshot.

        Returns:
            Snapshot dict, or None if unknown or expired
        """
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                return None
            snapshot, saved_at = entry
            if datetime.now(timezone.utc) - saved_at > self.config.session_ttl:
                del self._sessions[session_id]
                logger.info(f"Session {session_id} expired")
                return None
            return snapshot

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def purge_expired(self) -> int:
        """Drop expired sessions and return how many were removed"""
        now = datetime.now(timezone.utc)
        with self._lock:
            expired = [
                sid for sid, (_, saved_at) in self._sessions.items()
                if now - saved_at > self.config.session_ttl
            ]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info(f"Purged {len(expired)} expired sessions")
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions
