import logging
import random
import threading
from contextlib import contextmanager
from typing import Callable, List, Optional, Set

from memory_game.broadcast import SessionChannel
from memory_game.services.sessions import matching
from memory_game.services.sessions.deck import build_deck, fisher_yates
from memory_game.services.sessions.errors import (
    InvalidInput,
    NoSessionAvailable,
    NotYourTurn,
    SessionNotFound,
)
from memory_game.services.sessions.registry import SessionRegistry
from memory_game.services.sessions.session import Player, Session
from memory_game.services.sessions.timers import TurnTimerManager

MAX_NAME_LENGTH = 64
MAX_TURN_SECONDS = 600


class SessionDispatcher:
    """Entry point for every client action against a game session.

    Each action looks the session up in the registry, takes that session's
    lock, applies the game rules and broadcasts the result to every
    connection subscribed to the session before releasing the lock. Sessions
    never share a lock, so one slow game cannot stall another.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        channel: SessionChannel,
        scheduler,
        reveal_delay: float = 1.0,
        default_time_per_turn: int = 30,
        rng: Optional[random.Random] = None,
        card_set_loader: Optional[Callable[[int], List[str]]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.channel = channel
        self._scheduler = scheduler
        self._reveal_delay = reveal_delay
        self._default_time_per_turn = default_time_per_turn
        self._rng = rng or random.Random()
        self._card_set_loader = card_set_loader
        self._logger = logger or logging.getLogger(__name__)
        self._seat_lock = threading.Lock()
        self._seating: Set[str] = set()
        self._departed: Set[str] = set()
        self.timers = TurnTimerManager(
            scheduler,
            on_expire=self.on_timer_expired,
            notify=self._announce_timer,
            logger=self._logger,
        )

    # ---- Session access ----

    @contextmanager
    def _locked(self, session_id: str):
        session = self.registry.get(session_id) if session_id else None
        if session is None:
            raise SessionNotFound()
        with session.lock:
            # The registry may have dropped it while we waited on the lock
            if session.closed:
                raise SessionNotFound()
            yield session

    def _broadcast(self, session: Session, event: str, payload=None) -> None:
        self.channel.broadcast(session.id, event, payload if payload is not None else session.to_dict())

    def _announce_timer(self, session: Session, duration: int) -> None:
        self._broadcast(session, 'turn_timer_started', {'session_id': session.id, 'duration_seconds': duration})

    def _ack_joined(self, session: Session, connection_id: str) -> None:
        self.channel.send(connection_id, 'joined', {'session_id': session.id, 'connection_id': connection_id})

    # ---- Actions ----

    def create(
        self,
        connection_id: str,
        player_name: str,
        image_refs: Optional[List[str]] = None,
        time_per_turn=None,
        card_set_id: Optional[int] = None,
    ) -> Session:
        """Build a deck, open a forming session and seat the caller as host."""
        with self._seating_for(connection_id):
            name = _clean_name(player_name)
            self._ensure_unseated(connection_id)
            if card_set_id is not None:
                if self._card_set_loader is None:
                    raise InvalidInput('Card sets are not available')
                image_refs = self._card_set_loader(card_set_id)
            cards = build_deck(image_refs, self._rng)
            duration = self._coerce_duration(time_per_turn)

            host = Player(connection_id=connection_id, name=name)
            session = self.registry.get(self.registry.create(cards, duration, host=host))
            with session.lock:
                self.channel.subscribe(session.id, connection_id)
                if self._left_while_seating(session, connection_id):
                    return session
                self._logger.info(
                    f"[session-create] session={session.id} host={connection_id} cards={len(cards)} time_per_turn={duration}s"
                )
                self._ack_joined(session, connection_id)
                self._broadcast(session, 'waiting_for_opponent')
            return session

    def join(self, connection_id: str, player_name: str) -> Session:
        """Seat the caller in the oldest session that is not over.

        Active sessions accept joiners too; a mid-game joiner is appended to
        the end of the turn rotation.
        """
        with self._seating_for(connection_id):
            name = _clean_name(player_name)
            self._ensure_unseated(connection_id)
            for session in self.registry.all():
                with session.lock:
                    if session.closed or session.is_over:
                        continue
                    session.add_player(connection_id, name)
                    self.channel.subscribe(session.id, connection_id)
                    if self._left_while_seating(session, connection_id):
                        return session
                    self._logger.info(
                        f"[join] session={session.id} player={connection_id} status={session.status} players={len(session.players)}"
                    )
                    self._ack_joined(session, connection_id)
                    if session.started:
                        self._broadcast(session, 'game_updated')
                    else:
                        self._broadcast(session, 'waiting_for_opponent')
                    return session
            raise NoSessionAvailable()

    def start(self, connection_id: str, session_id: str) -> Session:
        """Host moves the session from forming to active."""
        with self._locked(session_id) as session:
            if not session.players or session.started or session.is_over:
                return session
            if session.host.connection_id != connection_id:
                raise NotYourTurn('Only the host can start the game')
            order = fisher_yates([p.connection_id for p in session.players], self._rng)
            session.start(order)
            self._logger.info(f"[start] session={session.id} turn_order={session.turn_order}")
            self._broadcast(session, 'game_started')
            self.timers.start(session)
            return session

    def flip(self, connection_id: str, session_id: str, card_id: int) -> Session:
        with self._locked(session_id) as session:
            card = matching.flip_card(session, connection_id, card_id)
            if card is None:
                self._logger.debug(f"[flip-ignored] session={session.id} player={connection_id} card={card_id}")
                return session
            self._logger.info(f"[flip] session={session.id} player={connection_id} card={card.id} moves={session.moves}")
            self._broadcast(session, 'card_flipped')
            if matching.finish_if_complete(session):
                self._finish(session)
            elif matching.pair_pending(session):
                self.timers.cancel(session.id)
                session.resolving = True
                session.resolve_seq += 1
                self._scheduler.call_later(self._reveal_delay, self._resolve, session.id, session.resolve_seq)
            return session

    def skip(self, connection_id: str, session_id: str) -> Session:
        with self._locked(session_id) as session:
            self._skip(session, connection_id)
            return session

    def disconnect(self, connection_id: str) -> Optional[Session]:
        """Remove a departed connection from its session.

        If the departing player held the turn, the turn moves on first so the
        survivors are never left waiting on a missing player. A connection that
        is still being seated by ``create`` or ``join`` is flagged so that the
        seat is undone before anyone is told about it.
        """
        with self._seat_lock:
            if connection_id in self._seating:
                self._departed.add(connection_id)
        session_id = self.channel.unsubscribe(connection_id)
        if session_id is None:
            return None
        try:
            with self._locked(session_id) as session:
                player = session.get_player(connection_id)
                if player is None:
                    return session
                handover = (
                    session.started
                    and not session.is_over
                    and session.current_player_id == connection_id
                    and len(session.players) > 1
                )
                if handover:
                    session.hide_pending()
                    # Drop any resolution still waiting on the reveal delay
                    session.resolving = False
                    session.resolve_seq += 1
                    matching.advance_turn(session)
                session.remove_player(connection_id)
                self._logger.info(
                    f"[disconnect] session={session.id} player={connection_id} remaining={len(session.players)}"
                )
                self._broadcast(session, 'player_disconnected', {'player_name': player.name, 'session': session.to_dict()})
                if not session.players:
                    self._destroy(session)
                elif handover:
                    self._broadcast(session, 'turn_changed')
                    self.timers.start(session)
                return session
        except SessionNotFound:
            return None

    # ---- Background callbacks ----

    def on_timer_expired(self, session_id: str, generation: int) -> None:
        """Forced skip once a turn timer runs out."""
        try:
            with self._locked(session_id) as session:
                if not self.timers.is_current(session_id, generation):
                    self._logger.info(f"[timer-abort] session={session_id} gen={generation} superseded")
                    return
                self._logger.info(f"[timeout] session={session_id} player={session.current_player_id}")
                self._skip(session, None)
        except SessionNotFound:
            self._logger.info(f"[timer-abort] session={session_id} no longer exists")

    def _resolve(self, session_id: str, seq: int) -> None:
        try:
            with self._locked(session_id) as session:
                if not session.resolving or session.resolve_seq != seq:
                    self._logger.info(f"[resolve-abort] session={session_id} seq={seq} stale")
                    return
                session.resolving = False
                outcome = matching.resolve_pair(session)
                if outcome is None:
                    return
                self._logger.info(
                    f"[resolve] session={session.id} outcome={outcome} current_player={session.current_player_id}"
                )
                self._broadcast(session, 'card_flipped')
                if matching.finish_if_complete(session):
                    self._finish(session)
                    return
                if outcome == matching.MISMATCH:
                    self._broadcast(session, 'turn_changed')
                self.timers.start(session)
        except SessionNotFound:
            self._logger.info(f"[resolve-abort] session={session_id} no longer exists")

    # ---- Helpers (session lock held) ----

    def _skip(self, session: Session, caller_id: Optional[str]) -> bool:
        if not matching.skip_turn(session, caller_id):
            self._logger.debug(f"[skip-ignored] session={session.id} caller={caller_id}")
            return False
        self._logger.info(
            f"[skip] session={session.id} forced={caller_id is None} next={session.current_player_id} moves={session.moves}"
        )
        self._broadcast(session, 'turn_changed')
        self.timers.start(session)
        return True

    def _finish(self, session: Session) -> None:
        self.timers.cancel(session.id)
        self._logger.info(f"[game-over] session={session.id} moves={session.moves}")
        self._broadcast(session, 'game_over')

    def _destroy(self, session: Session) -> None:
        self.timers.cancel(session.id)
        self.registry.remove(session.id)
        self.channel.drop(session.id)
        self._logger.info(f"[session-remove] session={session.id}")

    @contextmanager
    def _seating_for(self, connection_id: str):
        with self._seat_lock:
            self._seating.add(connection_id)
        try:
            yield
        finally:
            with self._seat_lock:
                self._seating.discard(connection_id)
                self._departed.discard(connection_id)

    def _left_while_seating(self, session: Session, connection_id: str) -> bool:
        """Undo a fresh seat whose connection dropped before it was subscribed."""
        with self._seat_lock:
            departed = connection_id in self._departed
        if not departed:
            return False
        # Nothing was announced yet, so the seat is withdrawn silently
        self.channel.unsubscribe(connection_id)
        session.remove_player(connection_id)
        self._logger.info(f"[seat-abandoned] session={session.id} player={connection_id}")
        if not session.players:
            self._destroy(session)
        return True

    def _ensure_unseated(self, connection_id: str) -> None:
        if self.channel.session_for(connection_id) is not None:
            raise InvalidInput('You are already in a game')

    def _coerce_duration(self, value) -> int:
        try:
            seconds = int(value)
        except (TypeError, ValueError):
            return self._default_time_per_turn
        if isinstance(value, bool) or not 1 <= seconds <= MAX_TURN_SECONDS:
            return self._default_time_per_turn
        return seconds


def _clean_name(value) -> str:
    name = value.strip() if isinstance(value, str) else ''
    if not name:
        raise InvalidInput('player_name is required')
    return name[:MAX_NAME_LENGTH]
