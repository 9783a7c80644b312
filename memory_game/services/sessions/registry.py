import threading
import uuid
from typing import Dict, List, Optional

from .session import Card, Player, Session


class SessionRegistry:
    """Thread-safe in-memory mapping of session id to Session.

    The registry lock only guards the mapping itself. Game state is guarded
    by each session's own lock, so sessions never contend with each other.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}

    def create(self, cards: List[Card], time_per_turn: int, host: Optional[Player] = None) -> str:
        """Register a new forming session and return its id.

        ``host`` is seated before the session becomes visible, so no joiner
        can overtake the creator.
        """
        session = Session(id=str(uuid.uuid4()), cards=cards, time_per_turn=time_per_turn)
        if host is not None:
            session.players.append(host)
        with self._lock:
            self._sessions[session.id] = session
        return session.id

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            session.closed = True
        return session

    def all(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions
