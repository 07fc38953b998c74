"""create game_session, player, turn, guess and game_audio tables

Revision ID: 4b7e91c2d0a1
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b7e91c2d0a1'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    # Databases bootstrapped with `flask db-reset` already have the tables
    if 'game_session' in set(insp.get_table_names()):
        return

    op.create_table(
        'game_session',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('lobby_code', sa.String(length=6), nullable=False),
        sa.Column('host_id', sa.String(length=64), nullable=False),
        sa.Column('game_name', sa.String(length=120), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('game_mode', sa.String(length=32), nullable=False),
        sa.Column('current_round', sa.Integer(), nullable=True),
        sa.Column('total_rounds', sa.Integer(), nullable=True),
        sa.Column('current_storyteller_id', sa.String(length=64), nullable=True),
        sa.Column('selected_audio_id', sa.String(length=64), nullable=True),
        sa.Column('selected_theme_id', sa.String(length=64), nullable=True),
        sa.Column('story_time_seconds', sa.Integer(), nullable=True),
        sa.Column('guess_time_seconds', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_game_session_lobby_code', 'game_session', ['lobby_code'], unique=True)

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('turn_order', sa.Integer(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['game_session.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'player_id', name='uq_player_session_identity'),
        sa.UniqueConstraint('session_id', 'turn_order', name='uq_player_session_turn_order'),
    )
    op.create_index('ix_player_session_id', 'player', ['session_id'])

    op.create_table(
        'turn',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('storyteller_id', sa.String(length=64), nullable=False),
        sa.Column('theme_id', sa.String(length=64), nullable=True),
        sa.Column('whisp', sa.String(length=120), nullable=True),
        sa.Column('secret_element', sa.String(length=200), nullable=True),
        sa.Column('turn_mode', sa.String(length=16), nullable=True),
        sa.Column('recording_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['game_session.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'round_number', name='uq_turn_session_round'),
    )
    op.create_index('ix_turn_session_id', 'turn', ['session_id'])

    op.create_table(
        'guess',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('turn_id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.String(length=64), nullable=False),
        sa.Column('content', sa.String(length=200), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['turn_id'], ['turn.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('turn_id', 'player_id', name='uq_guess_turn_player'),
    )
    op.create_index('ix_guess_turn_id', 'guess', ['turn_id'])

    op.create_table(
        'game_audio',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.String(length=64), nullable=False),
        sa.Column('audio_url', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['game_session.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_game_audio_session_id', 'game_audio', ['session_id'])


def downgrade():
    op.drop_index('ix_game_audio_session_id', table_name='game_audio')
    op.drop_table('game_audio')
    op.drop_index('ix_guess_turn_id', table_name='guess')
    op.drop_table('guess')
    op.drop_index('ix_turn_session_id', table_name='turn')
    op.drop_table('turn')
    op.drop_index('ix_player_session_id', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_game_session_lobby_code', table_name='game_session')
    op.drop_table('game_session')
