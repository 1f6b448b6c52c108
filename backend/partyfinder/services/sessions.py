import secrets
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from partyfinder.limits import now_ms

DEFAULT_SESSION_TTL_SEC = 7 * 24 * 60 * 60


@dataclass(frozen=True)
class DiscordUser:
    id: str
    username: str
    global_name: Optional[str] = None
    avatar: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.global_name or self.username

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'global_name': self.global_name,
            'avatar': self.avatar,
        }


@dataclass(frozen=True)
class Session:
    session_id: str
    user: DiscordUser
    expires_at: int


class SessionRegistry:
    """Opaque login tokens bound to a Discord identity, in memory only."""

    def __init__(self, ttl_sec: int = DEFAULT_SESSION_TTL_SEC, clock: Callable[[], int] = now_ms):
        self.ttl_ms = int(ttl_sec) * 1000
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}

    def create(self, user: DiscordUser) -> Session:
        session = Session(
            session_id=secrets.token_hex(24),
            user=user,
            expires_at=self._clock() + self.ttl_ms,
        )
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id) -> Optional[Session]:
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.expires_at < self._clock():
                del self._sessions[session_id]
                return None
            return session

    def delete(self, session_id) -> None:
        if not session_id:
            return
        with self._lock:
            self._sessions.pop(session_id, None)

    def cleanup(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.expires_at < now]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)
