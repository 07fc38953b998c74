"""Turn progression: game start, guess collection, completion and advancement.

Session status only moves waiting -> active -> completed, and a turn is
completed at most once. Two requests can both see the last guess land and
both decide the turn is done; the conditional write in
``claim_turn_completion`` picks exactly one of them to advance the game.
"""

from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from phraseotomy.errors import InvalidOperation, NotFound
from phraseotomy.models import (
    GameSession,
    Guess,
    Player,
    Turn,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_WAITING,
    utcnow,
)
from phraseotomy.schemas import SubmitGuessRequest
from . import events as ev
from .events import GameEvent
from .rules import DEFAULT_RULES, GameRules
from .scoring import award_points, score_guess
from .store import (
    OperationResult,
    get_or_create_turn,
    get_player,
    get_session_or_404,
    get_turn_for_round,
    ordered_players,
    store_errors,
)


def start_game(store, req, rules: GameRules = DEFAULT_RULES) -> OperationResult:
    """Move a waiting lobby to active and pre-create one turn per player.

    Round k belongs to the player with turn_order k. Starting an already
    active game returns its current state unchanged.
    """
    with store_errors(store, 'start_game'):
        game = get_session_or_404(store, req.session_id)
        if game.status == STATUS_ACTIVE:
            return _started_result(store, game, events=[])
        if game.status != STATUS_WAITING:
            raise InvalidOperation('Game has already finished')

        players = ordered_players(store, game.id)
        if not players:
            raise NotFound('No players found in session')
        if len(players) < rules.min_players:
            raise InvalidOperation(f'At least {rules.min_players} players are required to start')
        if [p.turn_order for p in players] != list(range(1, len(players) + 1)):
            raise InvalidOperation('Turn order must run 1..N without gaps')

        first = players[0]
        values = {
            GameSession.status: STATUS_ACTIVE,
            GameSession.started_at: utcnow(),
            GameSession.current_round: 1,
            GameSession.total_rounds: len(players),
            GameSession.current_storyteller_id: first.player_id,
        }
        if req.selected_audio_id:
            values[GameSession.selected_audio_id] = req.selected_audio_id
        claimed = store.query(GameSession).filter(
            GameSession.id == game.id,
            GameSession.status == STATUS_WAITING,
        ).update(values, synchronize_session=False)
        if claimed != 1:
            # Another request started it first
            store.rollback()
            return _started_result(store, get_session_or_404(store, req.session_id), events=[])

        for p in players:
            get_or_create_turn(store, game.id, p.turn_order, p.player_id)
        store.commit()

        current_app.logger.info(f"[game-start] session={game.id} rounds={len(players)} storyteller={first.player_id}")
        started = GameEvent(ev.GAME_STARTED, {
            'session_id': game.id,
            'current_round': 1,
            'total_rounds': len(players),
            'storyteller_id': first.player_id,
        })
        return _started_result(store, get_session_or_404(store, game.id), events=[started])


def _started_result(store, game, events) -> OperationResult:
    turns = store.query(Turn).filter_by(session_id=game.id).order_by(Turn.round_number.asc()).all()
    first_turn = next((t for t in turns if t.round_number == 1), None)
    return OperationResult(
        session_id=game.id,
        lobby_code=game.lobby_code,
        data={
            'session': game.to_dict(),
            'turn': first_turn.to_dict(reveal=False) if first_turn else None,
            'turns': [t.to_dict(reveal=False) for t in turns],
        },
        events=events,
    )


def submit_guess(store, req, rules: GameRules = DEFAULT_RULES) -> OperationResult:
    """Record one guess for (turn, player) and advance the game if it closes the turn.

    Repeating the call for a pair that already has a guess is a successful
    no-op, so clients and timers can retry freely.
    """
    with store_errors(store, 'submit_guess'):
        turn = store.get(Turn, req.turn_id)
        if turn is None:
            raise NotFound('Turn not found')
        game = get_session_or_404(store, turn.session_id)
        if req.player_id == turn.storyteller_id:
            raise InvalidOperation('The storyteller cannot guess on their own turn')
        if get_player(store, game.id, req.player_id) is None:
            raise NotFound('Player not found in this session')

        session_id, lobby_code = game.id, game.lobby_code
        turn_id, round_number, storyteller_id = turn.id, turn.round_number, turn.storyteller_id

        existing = store.query(Guess).filter_by(turn_id=turn_id, player_id=req.player_id).first()
        if existing is not None:
            return _duplicate_guess(store, session_id, lobby_code, turn_id, existing, rules)
        if turn.is_completed:
            raise InvalidOperation('Turn already completed')
        if game.status != STATUS_ACTIVE or game.current_round != round_number:
            raise InvalidOperation('This turn is not accepting guesses')

        guesser_points, storyteller_points = score_guess(turn, req.content, req.is_timeout, rules)
        store.add(Guess(
            turn_id=turn_id,
            player_id=req.player_id,
            content=req.content,
            points_earned=guesser_points,
        ))
        try:
            store.flush()
        except IntegrityError:
            # Lost a race with an identical submission
            store.rollback()
            existing = store.query(Guess).filter_by(turn_id=turn_id, player_id=req.player_id).first()
            current_app.logger.info(f"[guess-dup] turn={turn_id} player={req.player_id} resolved by constraint")
            return _duplicate_guess(store, session_id, lobby_code, turn_id, existing, rules)
        award_points(store, session_id, req.player_id, guesser_points)
        award_points(store, session_id, storyteller_id, storyteller_points)
        # Guess must be visible to other requests before anyone checks completion
        store.commit()

    current_app.logger.info(
        f"[guess] session={session_id} round={round_number} player={req.player_id} "
        f"timeout={req.is_timeout} points={guesser_points} storyteller_points={storyteller_points}"
    )
    result = OperationResult(session_id=session_id, lobby_code=lobby_code)
    result.events.append(GameEvent(ev.GUESS_SUBMITTED, {
        'turn_id': turn_id,
        'round_number': round_number,
        'player_id': req.player_id,
        'timeout': req.is_timeout,
    }))
    advancement = check_turn_completion(store, turn_id, rules)
    result.events.extend(advancement.events)
    result.game_completed = advancement.game_completed
    result.data = {
        'success': True,
        'correct': guesser_points > 0,
        'points_earned': guesser_points,
        'already_submitted': False,
        'timeout': req.is_timeout,
        **advancement.data,
    }
    return result


def _duplicate_guess(store, session_id, lobby_code, turn_id, guess, rules) -> OperationResult:
    """Answer a repeated guess, re-running the completion check.

    An earlier attempt may have committed the guess and then failed before
    closing the turn; the completion claim keeps this from advancing twice.
    """
    correct = bool(guess and guess.points_earned > 0)
    timeout = bool(guess and guess.is_timeout)
    advancement = check_turn_completion(store, turn_id, rules)
    return OperationResult(
        session_id=session_id,
        lobby_code=lobby_code,
        data={
            'success': True,
            'correct': correct,
            'points_earned': 0,
            'already_submitted': True,
            'timeout': timeout,
            **advancement.data,
        },
        events=advancement.events,
        game_completed=advancement.game_completed,
    )


def auto_submit_timeout(store, req, rules: GameRules = DEFAULT_RULES) -> OperationResult:
    """Record a zero-point timeout guess for a player who ran out of time."""
    with store_errors(store, 'auto_submit_timeout'):
        turn = get_turn_for_round(store, req.session_id, req.round_number)
        if turn is None:
            raise NotFound('Turn not found for round')
        turn_id = turn.id
    current_app.logger.info(
        f"[auto-timeout] session={req.session_id} round={req.round_number} "
        f"player={req.player_id} reason={req.reason or 'timer'}"
    )
    return submit_guess(store, SubmitGuessRequest(turn_id=turn_id, player_id=req.player_id, is_timeout=True), rules)


def skip_turn(store, req, rules: GameRules = DEFAULT_RULES) -> OperationResult:
    """Close the current turn without further guesses and move the game on."""
    with store_errors(store, 'skip_turn'):
        game = get_session_or_404(store, req.session_id)
        if game.status != STATUS_ACTIVE:
            raise InvalidOperation('Game is not in progress')
        session_id, lobby_code = game.id, game.lobby_code
        turn = get_or_create_turn(store, game.id, game.current_round, game.current_storyteller_id)
        turn_id = turn.id
        store.commit()

        if not claim_turn_completion(store, turn_id):
            store.rollback()
            return OperationResult(session_id=session_id, lobby_code=lobby_code, data={
                'success': True,
                'skipped': False,
                'reason': req.reason,
                'turn_completed': False,
                'next_round': None,
                'game_completed': False,
                'winner': None,
            })
        advancement = advance_after_turn(store, store.get(Turn, turn_id), rules)
        store.commit()

    current_app.logger.info(f"[turn-skip] session={session_id} turn={turn_id} reason={req.reason or '-'}")
    return OperationResult(
        session_id=session_id,
        lobby_code=lobby_code,
        data={'success': True, 'skipped': True, 'reason': req.reason, **advancement.data},
        events=advancement.events,
        game_completed=advancement.game_completed,
    )


def is_turn_complete(store, turn: Turn) -> bool:
    """True once every non-storyteller player has a guess on ``turn``."""
    player_ids = {pid for (pid,) in store.query(Player.player_id).filter(Player.session_id == turn.session_id)}
    guessers = player_ids - {turn.storyteller_id}
    guessed = {pid for (pid,) in store.query(Guess.player_id).filter(Guess.turn_id == turn.id)}
    return bool(guessers) and guessers <= guessed


def claim_turn_completion(store, turn_id: int, now=None) -> bool:
    """Set completed_at only if it is still null.

    Returns True for exactly one caller per turn; that caller alone may
    create the next turn and touch the session.
    """
    claimed = store.query(Turn).filter(
        Turn.id == turn_id,
        Turn.completed_at.is_(None),
    ).update({Turn.completed_at: now or utcnow()}, synchronize_session=False)
    return claimed == 1


def check_turn_completion(store, turn_id: int, rules: GameRules = DEFAULT_RULES) -> OperationResult:
    """Close ``turn_id`` if all guesses are in; safe to call any number of times."""
    with store_errors(store, 'check_turn_completion'):
        turn = store.get(Turn, turn_id)
        if turn is None or turn.is_completed or not is_turn_complete(store, turn):
            return _no_advance(turn)
        if not claim_turn_completion(store, turn.id):
            current_app.logger.info(f"[turn-complete-skip] turn={turn_id} already completed by another request")
            store.rollback()
            return _no_advance(turn)
        advancement = advance_after_turn(store, turn, rules)
        store.commit()
        return advancement


def _no_advance(turn: Optional[Turn]) -> OperationResult:
    return OperationResult(
        session_id=turn.session_id if turn else None,
        lobby_code=None,
        data={
            'turn_id': turn.id if turn else None,
            'round_number': turn.round_number if turn else None,
            'turn_completed': False,
            'next_round': None,
            'game_completed': False,
            'winner': None,
        },
    )


def advance_after_turn(store, turn: Turn, rules: GameRules = DEFAULT_RULES) -> OperationResult:
    """Move the session past ``turn``. Caller must hold the completion claim."""
    game = get_session_or_404(store, turn.session_id)
    turn_id, round_number, session_id = turn.id, turn.round_number, game.id
    result = OperationResult(session_id=session_id, lobby_code=game.lobby_code)
    result.data = {
        'turn_id': turn_id,
        'round_number': round_number,
        'turn_completed': True,
        'next_round': None,
        'game_completed': False,
        'winner': None,
    }
    result.events.append(GameEvent(ev.TURN_COMPLETED, {
        'turn_id': turn_id,
        'round_number': round_number,
        'storyteller_id': turn.storyteller_id,
    }))
    current_app.logger.info(f"[turn-complete] session={session_id} round={round_number} turn={turn_id}")

    next_round = round_number + 1
    next_storyteller = None
    if next_round <= (game.total_rounds or 0):
        next_storyteller = store.query(Player).filter_by(session_id=session_id, turn_order=next_round).first()
        if next_storyteller is None:
            current_app.logger.error(f"[next-round] session={session_id} no player holds turn_order={next_round}, ending game")

    if next_storyteller is not None:
        next_turn = get_or_create_turn(store, session_id, next_round, next_storyteller.player_id)
        moved = store.query(GameSession).filter(
            GameSession.id == session_id,
            GameSession.status == STATUS_ACTIVE,
            GameSession.current_round == round_number,
        ).update({
            GameSession.current_round: next_round,
            GameSession.current_storyteller_id: next_storyteller.player_id,
            GameSession.selected_theme_id: None,
        }, synchronize_session=False)
        if moved != 1:
            current_app.logger.warning(f"[next-round] session={session_id} expected round {round_number}, session not moved")
        result.data['next_round'] = {
            'round_number': next_round,
            'turn_id': next_turn.id,
            'storyteller_id': next_storyteller.player_id,
            'storyteller_name': next_storyteller.name,
        }
        result.events.append(GameEvent(ev.ROUND_ADVANCED, dict(result.data['next_round'])))
        current_app.logger.info(f"[next-round] session={session_id} advance round {round_number} -> {next_round} storyteller={next_storyteller.player_id}")
        return result

    store.query(GameSession).filter(
        GameSession.id == session_id,
        GameSession.status == STATUS_ACTIVE,
    ).update({
        GameSession.status: STATUS_COMPLETED,
        GameSession.ended_at: utcnow(),
    }, synchronize_session=False)
    winner = determine_winner(store, session_id)
    standings = final_standings(store, session_id)
    result.game_completed = True
    result.data['game_completed'] = True
    result.data['winner'] = winner
    result.events.append(GameEvent(ev.GAME_COMPLETED, {'winner': winner, 'standings': standings}))
    current_app.logger.info(f"[finish] session={session_id} finished at round={round_number} winner={winner and winner['player_id']}")
    return result


def determine_winner(store, session_id: int) -> Optional[dict]:
    """Highest score wins; ties go to the earliest turn_order."""
    player = (
        store.query(Player)
        .filter(Player.session_id == session_id)
        .order_by(Player.score.desc(), Player.turn_order.asc())
        .populate_existing()
        .first()
    )
    if player is None:
        return None
    return {'player_id': player.player_id, 'name': player.name, 'score': player.score}


def final_standings(store, session_id: int) -> list:
    players = (
        store.query(Player)
        .filter(Player.session_id == session_id)
        .order_by(Player.score.desc(), Player.turn_order.asc())
        .populate_existing()
        .all()
    )
    return [{'player_id': p.player_id, 'name': p.name, 'score': p.score} for p in players]
