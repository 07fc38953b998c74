from phraseotomy import db
from datetime import datetime, timezone
import string
import random

LOBBY_CODE_LENGTH = 6
LOBBY_CODE_ALPHABET = string.ascii_uppercase + string.digits

# Session lifecycle: waiting -> active -> completed
STATUS_WAITING = 'waiting'
STATUS_ACTIVE = 'active'
STATUS_COMPLETED = 'completed'

TIMEOUT_SENTINEL = '[TIMEOUT]'


def utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


def generate_lobby_code(length=LOBBY_CODE_LENGTH):
    """Generate a short, human-enterable lobby code."""
    return ''.join(random.choices(LOBBY_CODE_ALPHABET, k=length))


class GameSession(db.Model):
    __tablename__ = 'game_session'
    id = db.Column(db.Integer, primary_key=True)
    lobby_code = db.Column(db.String(LOBBY_CODE_LENGTH), unique=True, index=True, nullable=False)
    host_id = db.Column(db.String(64), nullable=False)
    game_name = db.Column(db.String(120), nullable=True)
    status = db.Column(db.String(16), default=STATUS_WAITING, nullable=False)
    game_mode = db.Column(db.String(32), default='live', nullable=False)
    current_round = db.Column(db.Integer, nullable=True)
    total_rounds = db.Column(db.Integer, nullable=True)
    current_storyteller_id = db.Column(db.String(64), nullable=True)
    selected_audio_id = db.Column(db.String(64), nullable=True)
    selected_theme_id = db.Column(db.String(64), nullable=True)
    story_time_seconds = db.Column(db.Integer, nullable=True)
    guess_time_seconds = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'lobby_code': self.lobby_code,
            'host_id': self.host_id,
            'game_name': self.game_name,
            'status': self.status,
            'game_mode': self.game_mode,
            'current_round': self.current_round,
            'total_rounds': self.total_rounds,
            'current_storyteller_id': self.current_storyteller_id,
            'selected_audio_id': self.selected_audio_id,
            'selected_theme_id': self.selected_theme_id,
            'story_time_seconds': self.story_time_seconds,
            'guess_time_seconds': self.guess_time_seconds,
            'created_at': _iso(self.created_at),
            'started_at': _iso(self.started_at),
            'ended_at': _iso(self.ended_at),
        }


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (
        db.UniqueConstraint('session_id', 'player_id', name='uq_player_session_identity'),
        db.UniqueConstraint('session_id', 'turn_order', name='uq_player_session_turn_order'),
    )
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('game_session.id'), nullable=False, index=True)
    # Stable identity (customer id or guest id), not the row id
    player_id = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    score = db.Column(db.Integer, default=0, nullable=False)
    turn_order = db.Column(db.Integer, nullable=False)
    joined_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'player_id': self.player_id,
            'name': self.name,
            'score': self.score,
            'turn_order': self.turn_order,
        }


class Turn(db.Model):
    __tablename__ = 'turn'
    __table_args__ = (
        db.UniqueConstraint('session_id', 'round_number', name='uq_turn_session_round'),
    )
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('game_session.id'), nullable=False, index=True)
    round_number = db.Column(db.Integer, nullable=False)
    storyteller_id = db.Column(db.String(64), nullable=False)
    theme_id = db.Column(db.String(64), nullable=True)
    whisp = db.Column(db.String(120), nullable=True)
    secret_element = db.Column(db.String(200), nullable=True)
    turn_mode = db.Column(db.String(16), nullable=True)
    recording_url = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    # Open while null; set exactly once
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_completed(self):
        return self.completed_at is not None

    def to_dict(self, reveal=True):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'round_number': self.round_number,
            'storyteller_id': self.storyteller_id,
            'theme_id': self.theme_id,
            'whisp': self.whisp if reveal else None,
            'secret_element': self.secret_element if reveal else None,
            'turn_mode': self.turn_mode,
            'recording_url': self.recording_url,
            'created_at': _iso(self.created_at),
            'completed_at': _iso(self.completed_at),
        }


class Guess(db.Model):
    __tablename__ = 'guess'
    __table_args__ = (
        db.UniqueConstraint('turn_id', 'player_id', name='uq_guess_turn_player'),
    )
    id = db.Column(db.Integer, primary_key=True)
    turn_id = db.Column(db.Integer, db.ForeignKey('turn.id'), nullable=False, index=True)
    player_id = db.Column(db.String(64), nullable=False)
    content = db.Column(db.String(200), nullable=False)
    points_earned = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def is_timeout(self):
        return self.content == TIMEOUT_SENTINEL

    def to_dict(self):
        return {
            'id': self.id,
            'turn_id': self.turn_id,
            'player_id': self.player_id,
            'content': self.content,
            'points_earned': self.points_earned,
            'timeout': self.is_timeout,
        }


class GameAudio(db.Model):
    __tablename__ = 'game_audio'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('game_session.id'), nullable=False, index=True)
    player_id = db.Column(db.String(64), nullable=False)
    audio_url = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'player_id': self.player_id,
            'audio_url': self.audio_url,
            'created_at': _iso(self.created_at),
        }
