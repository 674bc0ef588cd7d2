# backend/app/services/session_store.py

import threading
from typing import Dict, List, Optional

from app.core.config_loader import settings
from app.models.plan_models import Message, Role
from app.utils.time_utils import now_utc


def session_key(user_id: str, trip_id: Optional[str] = None) -> str:
    return f"{user_id}:{trip_id}" if trip_id else user_id


class ConversationSession:
    """Bounded message history for one (user, trip) pair."""

    def __init__(self, user_id: str, trip_id: Optional[str], max_messages: int):
        self.user_id = user_id
        self.trip_id = trip_id
        self.max_messages = max_messages
        self._messages: List[Message] = []
        self._lock = threading.Lock()

    def append(self, role: Role, content: str) -> Message:
        message = Message(role=role, content=content, timestamp=now_utc())
        with self._lock:
            self._messages.append(message)
            overflow = len(self._messages) - self.max_messages
            if overflow > 0:
                del self._messages[:overflow]
        return message

    def snapshot(self) -> List[Message]:
        with self._lock:
            return list(self._messages)

    def __len__(self):
        with self._lock:
            return len(self._messages)


class ConversationStateManager:
    """
    Process-local owner of every chat session.

    Sessions are created lazily, never persisted and dropped only by
    `clear`. A restart loses all of them; swapping this class for a shared
    cache is enough to make conversations survive across instances.
    """

    def __init__(self, max_messages: Optional[int] = None):
        self.max_messages = max_messages or settings.chat_history_limit
        self._sessions: Dict[str, ConversationSession] = {}
        self._lock = threading.Lock()

    def get_or_create(self, user_id: str, trip_id: Optional[str] = None) -> ConversationSession:
        key = session_key(user_id, trip_id)
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = ConversationSession(user_id, trip_id, self.max_messages)
                self._sessions[key] = session
            return session

    def append(self, session: ConversationSession, role: Role, content: str) -> Message:
        return session.append(role, content)

    def history(self, session: ConversationSession) -> List[Message]:
        return session.snapshot()

    def clear(self, user_id: str, trip_id: Optional[str] = None):
        with self._lock:
            self._sessions.pop(session_key(user_id, trip_id), None)

    def __len__(self):
        with self._lock:
            return len(self._sessions)
