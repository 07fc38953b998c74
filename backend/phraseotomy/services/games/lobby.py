"""Lobby management: creating, joining, leaving and ending game sessions.

Players only join while a session is waiting, and turn orders inside a
session stay dense (1..N) after every membership change so that round k
can always be handed to the player holding turn_order k.
"""

from flask import current_app

from phraseotomy.errors import InvalidOperation, NotFound
from phraseotomy.models import (
    GameAudio,
    GameSession,
    Guess,
    Player,
    Turn,
    STATUS_ACTIVE,
    STATUS_WAITING,
    generate_lobby_code,
)
from . import events as ev
from .events import GameEvent
from .rules import DEFAULT_RULES, GameRules
from .scheduler import delete_session_tree
from .store import (
    OperationResult,
    compact_turn_orders,
    get_player,
    get_session_or_404,
    get_turn_for_round,
    ordered_players,
    store_errors,
)

CREATE_CODE_ATTEMPTS = 24


def _unique_lobby_code(store) -> str:
    for _ in range(CREATE_CODE_ATTEMPTS):
        code = generate_lobby_code()
        if store.query(GameSession.id).filter_by(lobby_code=code).first() is None:
            return code
    raise InvalidOperation('Unable to create a lobby code right now', http_status=503)


def create_session(store, req, rules: GameRules = DEFAULT_RULES) -> OperationResult:
    """Open a new waiting lobby with its host seated at turn_order 1."""
    with store_errors(store, 'create_session'):
        game = GameSession(
            lobby_code=_unique_lobby_code(store),
            host_id=req.host_id,
            game_name=req.game_name,
            status=STATUS_WAITING,
            game_mode=req.game_mode or 'live',
            selected_theme_id=req.theme_id,
            story_time_seconds=req.story_time_seconds or rules.story_time_seconds,
            guess_time_seconds=req.guess_time_seconds or rules.guess_time_seconds,
        )
        store.add(game)
        store.flush()
        host = Player(session_id=game.id, player_id=req.host_id, name=req.host_name or 'Host', turn_order=1)
        store.add(host)
        store.commit()
        current_app.logger.info(f"[lobby-create] session={game.id} code={game.lobby_code} host={req.host_id}")
        return OperationResult(
            session_id=game.id,
            lobby_code=game.lobby_code,
            data={'success': True, 'session': game.to_dict(), 'player': host.to_dict()},
        )


def join_lobby(store, req, rules: GameRules = DEFAULT_RULES) -> OperationResult:
    """Seat a player in a waiting lobby; rejoining returns the existing seat."""
    with store_errors(store, 'join_lobby'):
        game = store.query(GameSession).filter_by(lobby_code=req.lobby_code).first()
        existing = get_player(store, game.id, req.player_id) if game else None
        if existing is not None:
            if game.status not in (STATUS_WAITING, STATUS_ACTIVE):
                raise InvalidOperation('This lobby has ended and is no longer available.', http_status=410)
            return OperationResult(
                session_id=game.id,
                lobby_code=game.lobby_code,
                data={
                    'session': game.to_dict(),
                    'player': existing.to_dict(),
                    'already_joined': True,
                    'message': 'Already in lobby',
                },
            )

        if game is None or game.status != STATUS_WAITING:
            raise NotFound('Game has already started or lobby not found. '
                           "You can only join games that haven't started yet.")

        count = store.query(Player).filter_by(session_id=game.id).count()
        if count >= rules.max_players:
            raise InvalidOperation(f'Lobby is full (maximum {rules.max_players} players)')

        player = Player(session_id=game.id, player_id=req.player_id, name=req.player_name, turn_order=count + 1)
        store.add(player)
        store.commit()
        current_app.logger.info(f"[lobby-join] session={game.id} player={req.player_id} order={player.turn_order}")
        return OperationResult(
            session_id=game.id,
            lobby_code=game.lobby_code,
            data={'session': game.to_dict(), 'player': player.to_dict(), 'already_joined': False},
            events=[GameEvent(ev.PLAYER_JOINED, {'player': player.to_dict()})],
        )


def _remove_player(store, game: GameSession, player: Player) -> None:
    turn_ids = [tid for (tid,) in store.query(Turn.id).filter(Turn.session_id == game.id)]
    if turn_ids:
        store.query(Guess).filter(
            Guess.turn_id.in_(turn_ids),
            Guess.player_id == player.player_id,
        ).delete(synchronize_session=False)
    store.query(GameAudio).filter_by(session_id=game.id, player_id=player.player_id).delete(synchronize_session=False)
    store.delete(player)
    store.flush()
    compact_turn_orders(store, ordered_players(store, game.id))


def leave_lobby(store, req) -> OperationResult:
    with store_errors(store, 'leave_lobby'):
        game = get_session_or_404(store, req.session_id)
        if game.host_id == req.player_id:
            raise InvalidOperation("Host cannot leave the lobby. Use 'End Game' instead.", http_status=403)
        player = get_player(store, game.id, req.player_id)
        if player is None:
            raise NotFound('Player not found in this session')
        if game.status != STATUS_WAITING:
            raise InvalidOperation('Players can only leave before the game starts')
        _remove_player(store, game, player)
        store.commit()
        current_app.logger.info(f"[lobby-leave] session={game.id} player={req.player_id}")
        return OperationResult(
            session_id=game.id,
            lobby_code=game.lobby_code,
            data={'success': True, 'message': 'Successfully left the lobby'},
            events=[GameEvent(ev.PLAYER_LEFT, {'player_id': req.player_id})],
        )


def kick_player(store, req) -> OperationResult:
    with store_errors(store, 'kick_player'):
        game = get_session_or_404(store, req.session_id)
        if game.host_id != req.host_id:
            raise InvalidOperation('Only the host can kick players', http_status=403)
        if req.player_id_to_kick == game.host_id:
            raise InvalidOperation('Cannot kick the host')
        player = get_player(store, game.id, req.player_id_to_kick)
        if player is None:
            raise NotFound('Player not found in this session')
        if game.status != STATUS_WAITING:
            raise InvalidOperation('Players can only be kicked before the game starts')
        name = player.name
        _remove_player(store, game, player)
        store.commit()
        current_app.logger.info(f"[lobby-kick] session={game.id} player={req.player_id_to_kick}")
        return OperationResult(
            session_id=game.id,
            lobby_code=game.lobby_code,
            data={
                'success': True,
                'kicked_player_name': name,
                'message': f'{name} has been kicked from the lobby',
            },
            events=[GameEvent(ev.PLAYER_KICKED, {'player_id': req.player_id_to_kick, 'name': name})],
        )


def end_lobby(store, req) -> OperationResult:
    """Host-only: delete the session and everything in it right away."""
    with store_errors(store, 'end_lobby'):
        game = get_session_or_404(store, req.session_id)
        if game.host_id != req.host_id:
            raise InvalidOperation('Only the host can end the lobby', http_status=403)
        session_id, lobby_code = game.id, game.lobby_code
        delete_session_tree(store, session_id)
        store.commit()
        current_app.logger.info(f"[lobby-end] session={session_id} code={lobby_code}")
        return OperationResult(
            session_id=session_id,
            lobby_code=lobby_code,
            data={'success': True, 'message': 'Lobby ended and deleted successfully'},
            events=[GameEvent(ev.LOBBY_ENDED, {'session_id': session_id})],
        )


def update_turn_order(store, req) -> OperationResult:
    """Reassign turn orders; the result must be a permutation of 1..N."""
    with store_errors(store, 'update_turn_order'):
        game = get_session_or_404(store, req.session_id)
        if game.status != STATUS_WAITING:
            raise InvalidOperation('Turn order can only change before the game starts')
        players = {p.player_id: p for p in ordered_players(store, game.id)}
        desired = {pid: p.turn_order for pid, p in players.items()}
        for update in req.updates:
            if update.player_id not in players:
                raise NotFound(f'Player {update.player_id} not found in this session')
            desired[update.player_id] = update.turn_order
        if sorted(desired.values()) != list(range(1, len(players) + 1)):
            raise InvalidOperation('Turn orders must be unique and cover 1..N')
        reordered = sorted(players.values(), key=lambda p: desired[p.player_id])
        compact_turn_orders(store, reordered)
        store.commit()
        order = [p.player_id for p in reordered]
        current_app.logger.info(f"[turn-order] session={game.id} order={order}")
        return OperationResult(
            session_id=game.id,
            lobby_code=game.lobby_code,
            data={'success': True, 'updated': len(req.updates), 'order': order},
            events=[GameEvent(ev.TURN_ORDER_UPDATED, {'order': order})],
        )


def register_audio(store, req) -> OperationResult:
    """Record metadata for an already-uploaded lobby audio clip."""
    with store_errors(store, 'register_audio'):
        game = get_session_or_404(store, req.session_id)
        if get_player(store, game.id, req.player_id) is None:
            raise NotFound('Player not found in this session')
        audio = GameAudio(session_id=game.id, player_id=req.player_id, audio_url=req.audio_url)
        store.add(audio)
        store.flush()
        if req.select:
            game.selected_audio_id = str(audio.id)
            store.add(game)
        store.commit()
        return OperationResult(
            session_id=game.id,
            lobby_code=game.lobby_code,
            data={'success': True, 'audio': audio.to_dict(), 'selected_audio_id': game.selected_audio_id},
        )


def get_lobby_state(store, session_id: int) -> OperationResult:
    with store_errors(store, 'get_lobby_state'):
        game = get_session_or_404(store, session_id)
        turns = store.query(Turn).filter_by(session_id=game.id).order_by(Turn.round_number.asc()).all()
        audio = store.query(GameAudio).filter_by(session_id=game.id).order_by(GameAudio.created_at.desc()).all()
        return OperationResult(
            session_id=game.id,
            lobby_code=game.lobby_code,
            data={
                'session': game.to_dict(),
                'players': [p.to_dict() for p in ordered_players(store, game.id)],
                'turns': [t.to_dict(reveal=t.is_completed) for t in turns],
                'audio_files': [a.to_dict() for a in audio],
                'current_turn_id': _current_turn_id(store, game),
            },
        )


def _current_turn_id(store, game: GameSession):
    if game.status != STATUS_ACTIVE or not game.current_round:
        return None
    turn = get_turn_for_round(store, game.id, game.current_round)
    return turn.id if turn else None
