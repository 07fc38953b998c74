from dataclasses import dataclass, field
from typing import Any, Dict

PLAYER_JOINED = 'player_joined'
PLAYER_LEFT = 'player_left'
PLAYER_KICKED = 'player_kicked'
LOBBY_ENDED = 'lobby_ended'
TURN_ORDER_UPDATED = 'turn_order_updated'
GAME_STARTED = 'game_started'
TURN_STARTED = 'turn_started'
GUESS_SUBMITTED = 'guess_submitted'
TURN_COMPLETED = 'turn_completed'
ROUND_ADVANCED = 'round_advanced'
GAME_COMPLETED = 'game_completed'
SESSION_CLEANED = 'session_cleaned'


@dataclass
class GameEvent:
    """A state change worth telling connected clients about.

    Services only build these; delivery happens after the store commit.
    Clients must tolerate duplicates and reordering, the store is the truth.
    """

    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
