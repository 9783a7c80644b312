import pytest

from memory_game.services.sessions import matching
from memory_game.services.sessions.errors import NotYourTurn
from memory_game.services.sessions.session import ACTIVE, OVER, Card, Session


def _session(players=('p1', 'p2')):
    cards = [
        Card(id=0, image_ref='x'),
        Card(id=1, image_ref='y'),
        Card(id=2, image_ref='x'),
        Card(id=3, image_ref='y'),
    ]
    session = Session(id='s', cards=cards, time_per_turn=10)
    for pid in players:
        session.add_player(pid, pid.upper())
    session.start(list(players))
    return session


def test_flip_reveals_card_and_counts_move():
    session = _session()
    card = matching.flip_card(session, 'p1', 0)
    assert card.flipped and not card.matched
    assert session.moves == 1
    assert session.status == ACTIVE


def test_flip_by_other_player_is_rejected():
    session = _session()
    with pytest.raises(NotYourTurn):
        matching.flip_card(session, 'p2', 0)
    assert session.moves == 0


def test_flip_before_start_is_rejected():
    session = Session(id='s', cards=[Card(0, 'x'), Card(1, 'x')], time_per_turn=10)
    session.add_player('p1', 'P1')
    with pytest.raises(NotYourTurn):
        matching.flip_card(session, 'p1', 0)


def test_duplicate_and_unknown_flips_are_noops():
    session = _session()
    matching.flip_card(session, 'p1', 0)
    assert matching.flip_card(session, 'p1', 0) is None
    assert matching.flip_card(session, 'p1', 42) is None
    assert matching.flip_card(session, 'p1', 'abc') is None
    assert session.moves == 1


def test_third_flip_waits_for_resolution():
    session = _session()
    matching.flip_card(session, 'p1', 0)
    matching.flip_card(session, 'p1', 1)
    assert matching.pair_pending(session)
    assert matching.flip_card(session, 'p1', 2) is None
    assert len(session.pending_cards()) == 2


def test_match_scores_and_keeps_turn():
    session = _session()
    matching.flip_card(session, 'p1', 0)
    matching.flip_card(session, 'p1', 2)
    assert matching.resolve_pair(session) == matching.MATCH
    assert session.cards[0].matched and session.cards[2].matched
    assert session.cards[0].flipped and session.cards[2].flipped
    assert session.get_player('p1').score == 1
    assert session.current_player_id == 'p1'
    assert not session.pending_cards()


def test_mismatch_hides_cards_and_passes_turn():
    session = _session()
    matching.flip_card(session, 'p1', 0)
    matching.flip_card(session, 'p1', 1)
    assert matching.resolve_pair(session) == matching.MISMATCH
    assert not session.cards[0].flipped and not session.cards[1].flipped
    assert session.current_player_id == 'p2'
    assert session.get_player('p1').score == 0


def test_resolve_without_pair_does_nothing():
    session = _session()
    matching.flip_card(session, 'p1', 0)
    assert matching.resolve_pair(session) is None
    assert session.cards[0].flipped


def test_game_over_only_after_last_pair():
    session = _session()
    matching.flip_card(session, 'p1', 0)
    matching.flip_card(session, 'p1', 2)
    matching.resolve_pair(session)
    assert not matching.finish_if_complete(session)
    matching.flip_card(session, 'p1', 1)
    matching.flip_card(session, 'p1', 3)
    matching.resolve_pair(session)
    assert matching.finish_if_complete(session)
    assert session.status == OVER
    # Terminal flag is set exactly once
    assert not matching.finish_if_complete(session)
    assert matching.flip_card(session, 'p1', 0) is None


def test_rotation_is_cyclic():
    session = _session(players=('p1', 'p2', 'p3'))
    for _ in range(3):
        matching.flip_card(session, session.current_player_id, 0)
        matching.flip_card(session, session.current_player_id, 1)
        matching.resolve_pair(session)
    assert session.current_player_id == 'p1'


def test_skip_requires_ownership_unless_forced():
    session = _session()
    with pytest.raises(NotYourTurn):
        matching.skip_turn(session, 'p2')
    assert matching.skip_turn(session, 'p1')
    assert session.current_player_id == 'p2'
    assert matching.skip_turn(session, None)
    assert session.current_player_id == 'p1'
    assert session.moves == 2


def test_skip_hides_lone_pending_card():
    session = _session()
    matching.flip_card(session, 'p1', 0)
    matching.skip_turn(session, 'p1')
    assert not session.cards[0].flipped


def test_skip_ignored_while_pair_resolves():
    session = _session()
    matching.flip_card(session, 'p1', 0)
    matching.flip_card(session, 'p1', 1)
    session.resolving = True
    assert not matching.skip_turn(session, None)
    assert session.current_player_id == 'p1'


def test_skip_with_missing_owner_resets_to_first_in_order():
    session = _session(players=('p1', 'p2', 'p3'))
    session.current_player_id = 'ghost'
    assert matching.skip_turn(session, None)
    assert session.current_player_id == 'p1'


def test_remove_player_updates_roster_and_rotation():
    session = _session(players=('p1', 'p2', 'p3'))
    session.remove_player('p2')
    assert [p.connection_id for p in session.players] == ['p1', 'p3']
    assert session.turn_order == ['p1', 'p3']
    assert session.next_player_id() == 'p3'


def test_face_down_cards_hide_their_image():
    session = _session()
    matching.flip_card(session, 'p1', 0)
    cards = {c['id']: c for c in session.to_dict()['cards']}
    assert cards[0]['image_ref'] == 'x'
    assert cards[1]['image_ref'] is None
