from typing import Iterable, Optional

from phraseotomy import socketio
from phraseotomy.services.games.events import GameEvent

NAMESPACE = '/ws'


def room_for(lobby_code: str) -> str:
    return f"game:{lobby_code.upper()}"


def publish_events(lobby_code: Optional[str], events: Iterable[GameEvent]) -> None:
    """Fan out committed state changes to everyone in the lobby room.

    Each event is emitted under its own name, followed by one generic
    ``state_update`` so older clients just refetch.
    """
    if not lobby_code:
        return
    room = room_for(lobby_code)
    sent = False
    for event in events:
        payload = {'lobby_code': lobby_code, **event.payload}
        socketio.emit(event.type, payload, to=room, namespace=NAMESPACE)
        sent = True
    if sent:
        socketio.emit('state_update', {'lobby_code': lobby_code}, to=room, namespace=NAMESPACE)
