import threading
from dataclasses import dataclass, field
from typing import List, Optional

FORMING = 'forming'
ACTIVE = 'active'
OVER = 'over'


@dataclass
class Card:
    id: int
    image_ref: str
    flipped: bool = False
    matched: bool = False

    @property
    def pending(self) -> bool:
        return self.flipped and not self.matched

    def to_dict(self):
        return {
            'id': self.id,
            # Face-down cards do not leak their image to the clients
            'image_ref': self.image_ref if self.flipped else None,
            'flipped': self.flipped,
            'matched': self.matched,
        }


@dataclass
class Player:
    connection_id: str
    name: str
    score: int = 0

    def to_dict(self):
        return {
            'connection_id': self.connection_id,
            'name': self.name,
            'score': self.score,
        }


@dataclass
class Session:
    """One game from creation until its last player leaves.

    All mutation happens while holding ``lock``; the dispatcher takes it for
    every client action, timer expiry and pair resolution.
    """
    id: str
    cards: List[Card]
    time_per_turn: int
    players: List[Player] = field(default_factory=list)
    turn_order: List[str] = field(default_factory=list)
    current_player_id: Optional[str] = None
    moves: int = 0
    is_over: bool = False
    started: bool = False
    resolving: bool = False
    resolve_seq: int = 0
    closed: bool = False
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def status(self) -> str:
        if self.is_over:
            return OVER
        if self.started:
            return ACTIVE
        return FORMING

    @property
    def host(self) -> Optional[Player]:
        return self.players[0] if self.players else None

    def get_player(self, connection_id: str) -> Optional[Player]:
        for p in self.players:
            if p.connection_id == connection_id:
                return p
        return None

    def get_card(self, card_id: int) -> Optional[Card]:
        if isinstance(card_id, bool) or not isinstance(card_id, int):
            return None
        # Ids are dense but the deck is shuffled, so look them up by value
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def pending_cards(self) -> List[Card]:
        return [c for c in self.cards if c.pending]

    def all_matched(self) -> bool:
        return all(c.matched for c in self.cards)

    def start(self, turn_order: List[str]) -> bool:
        """Fix the turn rotation and hand the first turn out."""
        if self.started or self.is_over or not turn_order:
            return False
        self.turn_order = list(turn_order)
        self.current_player_id = self.turn_order[0]
        self.started = True
        return True

    def add_player(self, connection_id: str, name: str) -> Player:
        player = Player(connection_id=connection_id, name=name)
        self.players.append(player)
        if self.started and not self.is_over:
            self.turn_order.append(connection_id)
        return player

    def remove_player(self, connection_id: str) -> Optional[Player]:
        """Drop a player from both the roster and the turn order."""
        player = self.get_player(connection_id)
        if player is None:
            return None
        self.players.remove(player)
        if connection_id in self.turn_order:
            self.turn_order.remove(connection_id)
        if self.current_player_id == connection_id:
            self.current_player_id = self.turn_order[0] if self.turn_order else None
        return player

    def next_player_id(self) -> Optional[str]:
        """Connection id following the current owner in ``turn_order``."""
        if not self.turn_order:
            return None
        try:
            idx = self.turn_order.index(self.current_player_id)
        except ValueError:
            return self.turn_order[0]
        return self.turn_order[(idx + 1) % len(self.turn_order)]

    def hide_pending(self) -> None:
        for card in self.pending_cards():
            card.flipped = False

    def to_dict(self):
        return {
            'id': self.id,
            'status': self.status,
            'cards': [c.to_dict() for c in self.cards],
            'players': [p.to_dict() for p in self.players],
            'turn_order': list(self.turn_order),
            'current_player_id': self.current_player_id,
            'moves': self.moves,
            'is_over': self.is_over,
            'time_per_turn': self.time_per_turn,
        }
