import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional

from .config import settings
from .controller import SessionController

logger = logging.getLogger(__name__)


@dataclass
class SessionEntry:
    controller: SessionController
    user_id: Optional[str]
    last_seen: datetime = field(default_factory=datetime.now)


class SessionRegistry:
    """In-memory quiz sessions keyed by the session cookie."""

    def __init__(self, timeout_minutes: int = settings.SESSION_TIMEOUT_MINUTES):
        self.timeout = timedelta(minutes=timeout_minutes)
        self.sessions: Dict[str, SessionEntry] = {}

    def _expired(self, entry: SessionEntry) -> bool:
        return datetime.now() - entry.last_seen > self.timeout

    def sweep(self) -> int:
        """Drops every expired session; returns how many were removed."""
        expired = [key for key, entry in self.sessions.items() if self._expired(entry)]
        for key in expired:
            del self.sessions[key]
        if expired:
            logger.info(f"Dropped {len(expired)} expired sessions")
        return len(expired)

    def create(self, controller: SessionController) -> str:
        self.sweep()
        session_id = str(uuid.uuid4())
        self.sessions[session_id] = SessionEntry(
            controller=controller, user_id=controller.auth.user_id
        )
        logger.info(f"New session: {session_id} [Level: {controller.level}]")
        return session_id

    def get(
        self, session_id: Optional[str], user_id: Optional[str]
    ) -> Optional[SessionController]:
        """Returns the live controller for the cookie, dropping expired or foreign ones."""
        if not session_id or session_id not in self.sessions:
            return None
        entry = self.sessions[session_id]
        if self._expired(entry):
            logger.info(f"Session {session_id} expired")
            del self.sessions[session_id]
            return None
        if entry.user_id != user_id:
            return None
        entry.last_seen = datetime.now()
        return entry.controller

    def remove(self, session_id: Optional[str]) -> Optional[SessionController]:
        entry = self.sessions.pop(session_id, None) if session_id else None
        return entry.controller if entry else None

    def controllers(self):
        return [entry.controller for entry in self.sessions.values()]
