from flask import current_app, request
from flask_socketio import emit
from memory_game import socketio
from memory_game.broadcast import NAMESPACE
from memory_game.services.sessions.errors import SessionError
from typing import Any, Dict, Optional


def _dispatcher():
    return current_app.extensions['session_dispatcher']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _as_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _reply_error(exc: SessionError) -> None:
    emit(exc.event, exc.to_dict())


def handle_connect(auth=None):
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(reason=None):
    sid = _get_sid()
    current_app.logger.info(f"[socket-disconnect] sid={sid} reason={reason}")
    _dispatcher().disconnect(sid)


def handle_create_session(data: Dict[str, Any]):
    data = data or {}
    card_set_id = data.get('card_set_id')
    try:
        _dispatcher().create(
            _get_sid(),
            data.get('player_name'),
            image_refs=data.get('image_refs'),
            time_per_turn=data.get('time_per_turn'),
            card_set_id=_as_int(card_set_id) if card_set_id is not None else None,
        )
    except SessionError as exc:
        _reply_error(exc)


def handle_join_session(data: Dict[str, Any]):
    data = data or {}
    try:
        _dispatcher().join(_get_sid(), data.get('player_name'))
    except SessionError as exc:
        _reply_error(exc)


def handle_start_session(data: Dict[str, Any]):
    session_id = (data or {}).get('session_id')
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return
    try:
        _dispatcher().start(_get_sid(), session_id)
    except SessionError as exc:
        _reply_error(exc)


def handle_flip_card(data: Dict[str, Any]):
    data = data or {}
    session_id = data.get('session_id')
    card_id = _as_int(data.get('card_id'))
    if not session_id or card_id is None:
        emit('error', {'message': 'session_id and an integer card_id are required'})
        return
    try:
        _dispatcher().flip(_get_sid(), session_id, card_id)
    except SessionError as exc:
        _reply_error(exc)


def handle_skip_turn(data: Dict[str, Any]):
    session_id = (data or {}).get('session_id')
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return
    try:
        _dispatcher().skip(_get_sid(), session_id)
    except SessionError as exc:
        _reply_error(exc)


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the game namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('create_session', handle_create_session, namespace=NAMESPACE)
    socketio.on_event('join_session', handle_join_session, namespace=NAMESPACE)
    socketio.on_event('start_session', handle_start_session, namespace=NAMESPACE)
    socketio.on_event('flip_card', handle_flip_card, namespace=NAMESPACE)
    socketio.on_event('skip_turn', handle_skip_turn, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
