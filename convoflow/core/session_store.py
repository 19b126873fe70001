"""In-memory session store."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from threading import RLock
from typing import Callable, Dict, List, Optional

from .errors import SessionNotFound
from .models import ContextPatch, Session, SessionConfig, apply_patch

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]

ACTIVE_WINDOW = timedelta(hours=1)


def _system_clock() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Keyed container of sessions; each call is atomic, nothing spans calls."""

    def __init__(
        self,
        session_defaults: Optional[SessionConfig] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = RLock()
        self._defaults = session_defaults or SessionConfig()
        self._clock = clock or _system_clock

    def now(self) -> datetime:
        return self._clock()

    def create(self, user_id: Optional[str] = None) -> Session:
        now = self.now()
        session = Session(
            user_id=user_id,
            config=replace(self._defaults),
            created_at=now,
            last_activity=now,
        )
        with self._lock:
            self._sessions[session.id] = session
        LOGGER.info("Session %s created for user %s", session.id, user_id or "<anonymous>")
        return session

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def require(self, session_id: str) -> Session:
        session = self.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def touch(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if not session:
                return False
            session.last_activity = self.now()
            return True

    def update_context(self, session_id: str, patch: ContextPatch) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if not session:
                LOGGER.debug("Context update for unknown session %s ignored", session_id)
                return False
            session.context = apply_patch(session.context, patch)
            session.last_activity = self.now()
            return True

    def delete(self, session_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed:
            LOGGER.info("Session %s deleted", session_id)
        return removed is not None

    def sweep_expired(self, max_idle: timedelta) -> int:
        cutoff = self.now() - max_idle
        with self._lock:
            to_remove = [sid for sid, s in self._sessions.items() if s.last_activity < cutoff]
            for sid in to_remove:
                self._sessions.pop(sid, None)
        if to_remove:
            LOGGER.info("Swept %d idle session(s)", len(to_remove))
        return len(to_remove)

    def list_sessions(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def clear_all(self) -> int:
        """Remove all sessions."""
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
        return count

    def stats(self) -> Dict[str, int]:
        cutoff = self.now() - ACTIVE_WINDOW
        with self._lock:
            total = len(self._sessions)
            active = sum(1 for s in self._sessions.values() if s.last_activity >= cutoff)
        return {"total_sessions": total, "active_sessions": active}

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
