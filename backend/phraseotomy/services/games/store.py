"""Store helpers shared by the game services.

The "store" is whatever SQLAlchemy session the caller hands in; routes pass
``db.session``. Services own their commits so that conditional writes act as
the only synchronization between concurrent requests.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from phraseotomy.errors import NotFound, Retryable
from phraseotomy.models import GameSession, Player, Turn
from .events import GameEvent


@dataclass
class OperationResult:
    """What a service hands back to its transport: response body plus events."""

    session_id: Optional[int]
    lobby_code: Optional[str]
    data: Dict[str, Any] = field(default_factory=dict)
    events: List[GameEvent] = field(default_factory=list)
    game_completed: bool = False


@contextmanager
def store_errors(store, action: str):
    """Roll back and surface store failures as Retryable."""
    try:
        yield
    except SQLAlchemyError as exc:
        store.rollback()
        current_app.logger.warning(f"[store-error] action={action} error={exc.__class__.__name__}: {exc}")
        raise Retryable(f'Temporary storage failure during {action}, please retry') from exc


def get_session_or_404(store, session_id: int) -> GameSession:
    game = store.get(GameSession, session_id)
    if game is None:
        raise NotFound('Session not found')
    return game


def ordered_players(store, session_id: int) -> List[Player]:
    return (
        store.query(Player)
        .filter(Player.session_id == session_id)
        .order_by(Player.turn_order.asc())
        .all()
    )


def get_player(store, session_id: int, player_id: str) -> Optional[Player]:
    return store.query(Player).filter_by(session_id=session_id, player_id=player_id).first()


def get_turn_for_round(store, session_id: int, round_number: int) -> Optional[Turn]:
    return store.query(Turn).filter_by(session_id=session_id, round_number=round_number).first()


def get_or_create_turn(store, session_id: int, round_number: int, storyteller_id: str) -> Turn:
    """Return the Turn for (session, round), creating it when missing.

    A pre-created turn is rebound to ``storyteller_id`` if it drifted.
    """
    turn = get_turn_for_round(store, session_id, round_number)
    if turn is None:
        turn = Turn(session_id=session_id, round_number=round_number, storyteller_id=storyteller_id)
        store.add(turn)
        store.flush()
    elif turn.storyteller_id != storyteller_id and not turn.is_completed:
        turn.storyteller_id = storyteller_id
        store.add(turn)
    return turn


def compact_turn_orders(store, players: List[Player]) -> None:
    """Renumber ``players`` (already in desired order) to 1..N.

    Goes through negative placeholders first so the per-session unique
    constraint on turn_order never sees two rows with the same value.
    """
    for idx, player in enumerate(players, start=1):
        player.turn_order = -idx
    store.flush()
    for idx, player in enumerate(players, start=1):
        player.turn_order = idx
    store.flush()
