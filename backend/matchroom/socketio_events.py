from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from matchroom import SESSION_EXTENSION, socketio
from matchroom.errors import GameError
from matchroom.services.broadcast import room_channel
from typing import Dict, Any


# socket id -> {'room_id': ..., 'player_id': ...}
_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _set_connected(player_id, connected: bool) -> None:
    if not player_id:
        return
    try:
        current_app.extensions[SESSION_EXTENSION].set_connected(player_id, connected)
    except GameError as exc:
        current_app.logger.warning(f"[ws] could not mark player={player_id} connected={connected}: {exc}")


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if ctx:
        _set_connected(ctx.get('player_id'), False)


def handle_subscribe(data):
    """Join the broadcast channel of a room; optionally mark a player connected."""
    room_id = (data or {}).get('roomId')
    player_id = (data or {}).get('playerId')
    if not room_id:
        emit('error', {'message': 'roomId is required'})
        return
    channel = room_channel(room_id)
    join_room(channel)
    previous = _sid_to_ctx.get(_get_sid())
    _sid_to_ctx[_get_sid()] = {'room_id': room_id, 'player_id': player_id}
    # One player per socket; the replaced one is offline now
    if previous and previous.get('player_id') != player_id:
        _set_connected(previous.get('player_id'), False)
    _set_connected(player_id, True)
    emit('subscribed', {'room': channel})


def handle_unsubscribe(data):
    room_id = (data or {}).get('roomId')
    if not room_id:
        emit('error', {'message': 'roomId is required'})
        return
    channel = room_channel(room_id)
    leave_room(channel)
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if ctx and ctx.get('room_id') == room_id:
        _set_connected(ctx.get('player_id'), False)
    emit('unsubscribed', {'room': channel})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('subscribe', handle_subscribe, namespace=namespace)
        socketio.on_event('unsubscribe', handle_unsubscribe, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
