"""Per-turn setup by the storyteller and the per-viewer game state read."""

from typing import Optional

from flask import current_app

from phraseotomy.errors import InvalidOperation, NotFound
from phraseotomy.models import GameSession, Guess, Turn, STATUS_ACTIVE
from . import events as ev
from .events import GameEvent
from .rules import DEFAULT_RULES, GameRules
from .scoring import CUSTOM_PREFIX
from .store import (
    OperationResult,
    get_or_create_turn,
    get_session_or_404,
    get_turn_for_round,
    ordered_players,
    store_errors,
)


def strip_custom_prefix(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if value.lower().startswith(CUSTOM_PREFIX):
        value = value[len(CUSTOM_PREFIX):].strip()
    return value or None


def start_turn(store, req, hint_client=None, rules: GameRules = DEFAULT_RULES) -> OperationResult:
    """Storyteller picks theme, mode and (optionally) the secret for the current round."""
    with store_errors(store, 'start_turn'):
        game = get_session_or_404(store, req.session_id)
        if game.status != STATUS_ACTIVE:
            raise InvalidOperation('Game is not in progress')
        if req.player_id != game.current_storyteller_id:
            raise InvalidOperation('Only the current storyteller can start the turn', http_status=403)

        turn = get_or_create_turn(store, game.id, game.current_round, game.current_storyteller_id)
        if turn.is_completed:
            raise InvalidOperation('Turn already completed')

        whisp = rules.whisp_fallback
        if hint_client is not None and req.element_name:
            whisp = hint_client.generate(req.element_name, req.theme_name)

        turn.theme_id = req.theme_id or game.selected_theme_id
        turn.turn_mode = req.turn_mode
        turn.whisp = whisp
        secret = strip_custom_prefix(req.secret_element)
        if secret:
            turn.secret_element = secret
        game.selected_theme_id = turn.theme_id
        store.add(turn)
        store.add(game)
        store.commit()

        current_app.logger.info(f"[turn-start] session={game.id} round={turn.round_number} mode={turn.turn_mode} theme={turn.theme_id}")
        return OperationResult(
            session_id=game.id,
            lobby_code=game.lobby_code,
            data={'success': True, 'turn': turn.to_dict(reveal=True), 'whisp': whisp},
            events=[GameEvent(ev.TURN_STARTED, {
                'turn_id': turn.id,
                'round_number': turn.round_number,
                'storyteller_id': turn.storyteller_id,
                'theme_id': turn.theme_id,
                'turn_mode': turn.turn_mode,
            })],
        )


def set_turn_secret(store, req) -> OperationResult:
    with store_errors(store, 'set_turn_secret'):
        turn = store.get(Turn, req.turn_id)
        if turn is None:
            raise NotFound('Turn not found')
        if turn.is_completed:
            raise InvalidOperation('Turn already completed')
        secret = strip_custom_prefix(req.secret_element)
        if not secret:
            raise InvalidOperation('Secret element is empty')
        game = store.get(GameSession, turn.session_id)
        turn.secret_element = secret
        store.add(turn)
        store.commit()
        current_app.logger.info(f"[turn-secret] turn={turn.id} round={turn.round_number}")
        return OperationResult(
            session_id=turn.session_id,
            lobby_code=game.lobby_code if game else None,
            data={'success': True, 'turn_id': turn.id},
        )


def get_game_state(store, session_id: int, viewer_id: Optional[str] = None) -> OperationResult:
    """Snapshot of the session as ``viewer_id`` is allowed to see it.

    The whisp and the secret stay hidden from guessers until the turn
    completes.
    """
    with store_errors(store, 'get_game_state'):
        game = get_session_or_404(store, session_id)
        players = ordered_players(store, game.id)
        turn = get_turn_for_round(store, game.id, game.current_round) if game.current_round else None

        current_turn = None
        guessed = []
        if turn is not None:
            reveal = turn.is_completed or (viewer_id is not None and viewer_id == turn.storyteller_id)
            current_turn = turn.to_dict(reveal=reveal)
            guessed = [pid for (pid,) in store.query(Guess.player_id).filter(Guess.turn_id == turn.id)]

        return OperationResult(
            session_id=game.id,
            lobby_code=game.lobby_code,
            data={
                'session': game.to_dict(),
                'players': [p.to_dict() for p in players],
                'current_turn': current_turn,
                'guessed_player_ids': guessed,
                'is_storyteller': bool(viewer_id) and viewer_id == game.current_storyteller_id,
            },
        )
