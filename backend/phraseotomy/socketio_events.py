from flask_socketio import join_room, leave_room, emit

from phraseotomy import socketio
from phraseotomy.realtime import NAMESPACE, room_for


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def _lobby_code(data):
    # Older clients still send game_code
    data = data or {}
    return data.get('lobby_code') or data.get('lobbyCode') or data.get('game_code')


def handle_join_game(data):
    lobby_code = _lobby_code(data)
    if not lobby_code:
        emit('error', {'message': 'lobby_code is required'})
        return
    room = room_for(lobby_code)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_game(data):
    lobby_code = _lobby_code(data)
    if not lobby_code:
        emit('error', {'message': 'lobby_code is required'})
        return
    room = room_for(lobby_code)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    Rooms are only a delivery channel; nothing here touches game state.
    """
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('join_game', handle_join_game, namespace=namespace)
        socketio.on_event('leave_game', handle_leave_game, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
