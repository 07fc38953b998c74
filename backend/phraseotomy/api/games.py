from flask import Blueprint, jsonify, request, current_app
from phraseotomy import db
from phraseotomy.errors import GameError
from phraseotomy.realtime import publish_events
from phraseotomy.schemas import (
    AutoSubmitTimeoutRequest,
    CreateSessionRequest,
    EndLobbyRequest,
    JoinLobbyRequest,
    KickPlayerRequest,
    LeaveLobbyRequest,
    RegisterAudioRequest,
    SetTurnSecretRequest,
    SkipTurnRequest,
    StartGameRequest,
    StartTurnRequest,
    SubmitGuessRequest,
    UpdateTurnOrderRequest,
    parse_request,
)
from phraseotomy.services.games import lobby as svc_lobby
from phraseotomy.services.games import progression as svc_progression
from phraseotomy.services.games import turns as svc_turns
from phraseotomy.services.games.rules import GameRules
from phraseotomy.services.games.scheduler import schedule_session_cleanup
from phraseotomy.services.games.whisp import WhispClient


games = Blueprint('games', __name__)


@games.errorhandler(GameError)
def handle_game_error(exc: GameError):
    if exc.http_status >= 500:
        current_app.logger.warning(f"[api-error] {request.method} {request.path} code={exc.code} message={exc.message}")
    return jsonify(exc.to_dict()), exc.http_status


def _rules() -> GameRules:
    return GameRules.from_config(current_app.config)


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _respond(result, status: int = 200):
    """Deliver the committed result: events to the lobby room, body to the caller."""
    publish_events(result.lobby_code, result.events)
    if result.game_completed and result.session_id is not None:
        schedule_session_cleanup(current_app._get_current_object(), result.session_id)
    return jsonify(result.data), status


@games.route('/create', methods=['POST'])
def create_session():
    req = parse_request(CreateSessionRequest, _body())
    return _respond(svc_lobby.create_session(db.session, req, _rules()), 201)


@games.route('/join', methods=['POST'])
def join_lobby():
    req = parse_request(JoinLobbyRequest, _body())
    result = svc_lobby.join_lobby(db.session, req, _rules())
    return _respond(result, 200 if result.data.get('already_joined') else 201)


@games.route('/<int:session_id>/lobby', methods=['GET'])
def get_lobby_state(session_id):
    return _respond(svc_lobby.get_lobby_state(db.session, session_id))


@games.route('/<int:session_id>/state', methods=['GET'])
def get_game_state(session_id):
    viewer_id = request.args.get('playerId') or request.args.get('player_id')
    return _respond(svc_turns.get_game_state(db.session, session_id, viewer_id))


@games.route('/<int:session_id>/leave', methods=['POST'])
def leave_lobby(session_id):
    req = parse_request(LeaveLobbyRequest, _body(), session_id=session_id)
    return _respond(svc_lobby.leave_lobby(db.session, req))


@games.route('/<int:session_id>/kick', methods=['POST'])
def kick_player(session_id):
    req = parse_request(KickPlayerRequest, _body(), session_id=session_id)
    return _respond(svc_lobby.kick_player(db.session, req))


@games.route('/<int:session_id>/end', methods=['POST'])
def end_lobby(session_id):
    req = parse_request(EndLobbyRequest, _body(), session_id=session_id)
    return _respond(svc_lobby.end_lobby(db.session, req))


@games.route('/<int:session_id>/turn-order', methods=['POST'])
def update_turn_order(session_id):
    req = parse_request(UpdateTurnOrderRequest, _body(), session_id=session_id)
    return _respond(svc_lobby.update_turn_order(db.session, req))


@games.route('/<int:session_id>/audio', methods=['POST'])
def register_audio(session_id):
    req = parse_request(RegisterAudioRequest, _body(), session_id=session_id)
    return _respond(svc_lobby.register_audio(db.session, req), 201)


@games.route('/<int:session_id>/start', methods=['POST'])
def start_game(session_id):
    req = parse_request(StartGameRequest, _body(), session_id=session_id)
    return _respond(svc_progression.start_game(db.session, req, _rules()))


@games.route('/<int:session_id>/turn/start', methods=['POST'])
def start_turn(session_id):
    req = parse_request(StartTurnRequest, _body(), session_id=session_id)
    hint_client = WhispClient.from_config(current_app.config)
    return _respond(svc_turns.start_turn(db.session, req, hint_client, _rules()))


@games.route('/<int:session_id>/skip', methods=['POST'])
def skip_turn(session_id):
    req = parse_request(SkipTurnRequest, _body(), session_id=session_id)
    return _respond(svc_progression.skip_turn(db.session, req, _rules()))


@games.route('/<int:session_id>/timeout', methods=['POST'])
def auto_submit_timeout(session_id):
    req = parse_request(AutoSubmitTimeoutRequest, _body(), session_id=session_id)
    return _respond(svc_progression.auto_submit_timeout(db.session, req, _rules()))


@games.route('/turns/<int:turn_id>/secret', methods=['POST'])
def set_turn_secret(turn_id):
    req = parse_request(SetTurnSecretRequest, _body(), turn_id=turn_id)
    return _respond(svc_turns.set_turn_secret(db.session, req))


@games.route('/turns/<int:turn_id>/guess', methods=['POST'])
def submit_guess(turn_id):
    req = parse_request(SubmitGuessRequest, _body(), turn_id=turn_id)
    return _respond(svc_progression.submit_guess(db.session, req, _rules()))
