import logging
import threading
from typing import Any, Callable, Dict, Optional, Set

NAMESPACE = '/ws'


class SessionChannel:
    """Tracks which connections are subscribed to which session.

    Delivery goes connection by connection through ``emit`` (normally
    ``socketio.emit``), so membership does not depend on Socket.IO rooms.
    """

    def __init__(self, emit: Callable[..., Any], namespace: str = NAMESPACE, logger: Optional[logging.Logger] = None):
        self._emit = emit
        self._namespace = namespace
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._members: Dict[str, Set[str]] = {}
        self._by_connection: Dict[str, str] = {}

    def subscribe(self, session_id: str, connection_id: str) -> None:
        with self._lock:
            self._members.setdefault(session_id, set()).add(connection_id)
            self._by_connection[connection_id] = session_id

    def unsubscribe(self, connection_id: str) -> Optional[str]:
        with self._lock:
            session_id = self._by_connection.pop(connection_id, None)
            if session_id is not None:
                members = self._members.get(session_id)
                if members is not None:
                    members.discard(connection_id)
                    if not members:
                        self._members.pop(session_id, None)
        return session_id

    def drop(self, session_id: str) -> None:
        with self._lock:
            for connection_id in self._members.pop(session_id, set()):
                self._by_connection.pop(connection_id, None)

    def session_for(self, connection_id: str) -> Optional[str]:
        with self._lock:
            return self._by_connection.get(connection_id)

    def members(self, session_id: str) -> Set[str]:
        with self._lock:
            return set(self._members.get(session_id, set()))

    def broadcast(self, session_id: str, event: str, payload: Dict[str, Any]) -> None:
        for connection_id in sorted(self.members(session_id)):
            self.send(connection_id, event, payload)

    def send(self, connection_id: str, event: str, payload: Dict[str, Any]) -> None:
        try:
            self._emit(event, payload, to=connection_id, namespace=self._namespace)
        except Exception as exc:
            self._logger.warning(f"[emit-failed] event={event} to={connection_id}: {exc}")
