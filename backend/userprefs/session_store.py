"""Server-side HTTP session attributes with end-of-session listeners."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class SessionAttributes(Protocol):
    def get_attribute(self, key: str) -> Any:
        ...

    def set_attribute(self, key: str, value: Any) -> None:
        ...

    def remove_attribute(self, key: str) -> None:
        ...


class HttpSession:
    """Attribute bag for one client session.

    Requests of the same session are not serialized against each other.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.created_at = datetime.now(timezone.utc)
        self._attributes: Dict[str, Any] = {}
        self._end_listeners: List[Callable[["HttpSession"], None]] = []
        self._valid = True

    @property
    def is_valid(self) -> bool:
        return self._valid

    def get_attribute(self, key: str) -> Any:
        return self._attributes.get(key)

    def set_attribute(self, key: str, value: Any) -> None:
        if not self._valid:
            raise RuntimeError(f"Session {self.session_id} has been invalidated.")
        self._attributes[key] = value

    def remove_attribute(self, key: str) -> None:
        self._attributes.pop(key, None)

    def attributes(self) -> Dict[str, Any]:
        return dict(self._attributes)

    def add_end_listener(self, listener: Callable[["HttpSession"], None]) -> None:
        self._end_listeners.append(listener)

    def invalidate(self) -> None:
        if not self._valid:
            return
        self._valid = False
        listeners, self._end_listeners = self._end_listeners, []
        for listener in listeners:
            try:
                listener(self)
            except Exception:  # noqa: BLE001
                logger.exception("Session end listener failed for session %s", self.session_id)
        self._attributes.clear()


class SessionStore:
    def __init__(self) -> None:
        self._sessions: Dict[str, HttpSession] = {}
        self._lock = threading.RLock()

    def create(self) -> HttpSession:
        session = HttpSession(uuid.uuid4().hex)
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: Optional[str]) -> Optional[HttpSession]:
        if not session_id:
            return None
        with self._lock:
            return self._sessions.get(session_id)

    def get_or_create(self, session_id: Optional[str]) -> Tuple[HttpSession, bool]:
        session = self.get(session_id)
        if session is not None and session.is_valid:
            return session, False
        return self.create(), True

    def invalidate(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.invalidate()
        return True

    def sessions(self) -> List[HttpSession]:
        with self._lock:
            return list(self._sessions.values())

    def clear(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.invalidate()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


session_store = SessionStore()


def get_session_store() -> SessionStore:
    return session_store


__all__ = [
    "HttpSession",
    "SessionAttributes",
    "SessionStore",
    "get_session_store",
    "session_store",
]
