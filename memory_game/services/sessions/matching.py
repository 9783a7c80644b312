"""Flip, pair resolution and turn rotation rules.

Every function here expects the caller to hold ``session.lock``. They only
mutate state and report what happened; broadcasting and timers are the
dispatcher's job.
"""
from typing import Optional

from .errors import NotYourTurn
from .session import Card, Session

MATCH = 'match'
MISMATCH = 'mismatch'


def flip_card(session: Session, caller_id: str, card_id: int) -> Optional[Card]:
    """Reveal a card for the turn owner.

    Returns the revealed card, or None when the flip is absorbed as a no-op
    (game over, unknown/already revealed card, pair already pending).
    """
    if session.is_over:
        return None
    if not session.started or caller_id != session.current_player_id:
        raise NotYourTurn()
    if session.resolving or len(session.pending_cards()) >= 2:
        return None
    card = session.get_card(card_id)
    if card is None or card.flipped or card.matched:
        return None
    card.flipped = True
    session.moves += 1
    return card


def pair_pending(session: Session) -> bool:
    return len(session.pending_cards()) == 2


def resolve_pair(session: Session) -> Optional[str]:
    """Settle the two revealed cards.

    A match scores a point for the turn owner, who keeps the turn. A
    mismatch turns both cards face-down and passes the turn on.
    """
    pending = session.pending_cards()
    if len(pending) != 2:
        return None
    first, second = pending
    if first.image_ref == second.image_ref:
        first.matched = second.matched = True
        owner = session.get_player(session.current_player_id)
        if owner is not None:
            owner.score += 1
        return MATCH
    first.flipped = second.flipped = False
    advance_turn(session)
    return MISMATCH


def advance_turn(session: Session) -> Optional[str]:
    session.current_player_id = session.next_player_id()
    return session.current_player_id


def skip_turn(session: Session, caller_id: Optional[str] = None) -> bool:
    """Pass the turn to the next player.

    ``caller_id`` of None is a forced skip (turn timer) and bypasses the
    ownership check. Returns False when there is nothing to skip.
    """
    if not session.started or session.is_over:
        return False
    if caller_id is not None and caller_id != session.current_player_id:
        raise NotYourTurn()
    if session.resolving or not session.turn_order:
        return False
    session.hide_pending()
    if session.current_player_id not in session.turn_order:
        session.current_player_id = session.turn_order[0]
    else:
        advance_turn(session)
    session.moves += 1
    return True


def finish_if_complete(session: Session) -> bool:
    """Mark the session over the first time every card is matched."""
    if session.is_over or not session.all_matched():
        return False
    session.is_over = True
    return True
