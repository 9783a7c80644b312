import itertools
import logging
import threading
from typing import Callable, Dict, Optional

from .session import Session


class BackgroundScheduler:
    """Run a callback after a delay as a Socket.IO background task.

    Uses ``socketio.sleep`` so the delay cooperates with eventlet/gevent as
    well as plain threads.
    """

    def __init__(self, socketio, logger: Optional[logging.Logger] = None):
        self._socketio = socketio
        self._logger = logger or logging.getLogger(__name__)

    def call_later(self, delay: float, fn: Callable, *args) -> None:
        def _runner():
            if delay and delay > 0:
                self._socketio.sleep(delay)
            try:
                fn(*args)
            except Exception:
                self._logger.exception(f"[task-error] delayed call {getattr(fn, '__name__', fn)} failed")

        self._socketio.start_background_task(_runner)


class TurnTimerManager:
    """One single-shot turn timer per session id.

    A timer is identified by a generation number. Starting or cancelling a
    timer retires the previous generation; a retired timer wakes up, sees it
    is stale and exits without touching the session. Only the session id and
    generation travel with the timer, never the Session itself.
    """

    def __init__(
        self,
        scheduler,
        on_expire: Callable[[str, int], None],
        notify: Callable[[Session, int], None],
        logger: Optional[logging.Logger] = None,
    ):
        self._scheduler = scheduler
        self._on_expire = on_expire
        self._notify = notify
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._live: Dict[str, int] = {}
        self._counter = itertools.count(1)

    def start(self, session: Session) -> int:
        duration = int(session.time_per_turn)
        with self._lock:
            generation = next(self._counter)
            self._live[session.id] = generation
        self._logger.info(
            f"[timer-set] session={session.id} player={session.current_player_id} duration={duration}s gen={generation}"
        )
        self._scheduler.call_later(duration, self._fire, session.id, generation)
        self._notify(session, duration)
        return generation

    def cancel(self, session_id: str) -> None:
        # Only retires the generation; the sleeping task wakes, sees it is stale
        # and exits on its own
        with self._lock:
            generation = self._live.pop(session_id, None)
        if generation is not None:
            self._logger.info(f"[timer-cancel] session={session_id} gen={generation}")

    def is_current(self, session_id: str, generation: int) -> bool:
        with self._lock:
            return self._live.get(session_id) == generation

    def has_timer(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._live

    def _fire(self, session_id: str, generation: int) -> None:
        if not self.is_current(session_id, generation):
            self._logger.info(f"[timer-abort] session={session_id} gen={generation} superseded")
            return
        self._logger.info(f"[timer-fire] session={session_id} gen={generation}")
        self._on_expire(session_id, generation)

    def __len__(self) -> int:
        with self._lock:
            return len(self._live)
