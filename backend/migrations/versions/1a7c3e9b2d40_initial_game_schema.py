"""players, games, memberships, answers and dispute votes

Revision ID: 1a7c3e9b2d40
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a7c3e9b2d40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_token', sa.String(length=256), nullable=False),
        sa.Column('display_name', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_player_session_token', 'player', ['session_token'], unique=True)

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_code', sa.String(length=6), nullable=False),
        sa.Column('host_player_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('mode', sa.String(length=16), nullable=False),
        sa.Column('category', sa.String(length=256), nullable=True),
        sa.Column('timer_seconds', sa.Integer(), nullable=False),
        sa.Column('turn_timer_seconds', sa.Integer(), nullable=False),
        sa.Column('current_turn_player_id', sa.Integer(), nullable=True),
        sa.Column('current_turn_deadline', sa.Float(), nullable=True),
        sa.Column('is_paused', sa.Boolean(), nullable=False),
        sa.Column('paused_at', sa.Float(), nullable=True),
        sa.Column('paused_time_remaining_ms', sa.Integer(), nullable=True),
        sa.Column('paused_turn_player_id', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.Float(), nullable=True),
        sa.Column('ended_at', sa.Float(), nullable=True),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['host_player_id'], ['player.id']),
        sa.ForeignKeyConstraint(['current_turn_player_id'], ['player.id']),
        sa.ForeignKeyConstraint(['paused_turn_player_id'], ['player.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_game_game_code', 'game', ['game_code'], unique=False)

    op.create_table(
        'game_player',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.Integer(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('is_spectator', sa.Boolean(), nullable=False),
        sa.Column('is_eliminated', sa.Boolean(), nullable=False),
        sa.Column('eliminated_at', sa.Float(), nullable=True),
        sa.Column('joined_at', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['player_id'], ['player.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('game_id', 'player_id', name='uq_game_player'),
    )
    op.create_index('ix_game_player_game_id', 'game_player', ['game_id'], unique=False)

    op.create_table(
        'answer',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.Integer(), nullable=False),
        sa.Column('text', sa.String(length=256), nullable=False),
        sa.Column('normalized_text', sa.String(length=256), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['player_id'], ['player.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('game_id', 'player_id', 'normalized_text', name='uq_answer_game_player_text'),
    )
    op.create_index('ix_answer_game_id', 'answer', ['game_id'], unique=False)

    op.create_table(
        'dispute_vote',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('answer_id', sa.Integer(), nullable=False),
        sa.Column('voter_player_id', sa.Integer(), nullable=False),
        sa.Column('accept', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['answer_id'], ['answer.id']),
        sa.ForeignKeyConstraint(['voter_player_id'], ['player.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('answer_id', 'voter_player_id', name='uq_dispute_vote'),
    )
    op.create_index('ix_dispute_vote_answer_id', 'dispute_vote', ['answer_id'], unique=False)


def downgrade():
    op.drop_index('ix_dispute_vote_answer_id', table_name='dispute_vote')
    op.drop_table('dispute_vote')
    op.drop_index('ix_answer_game_id', table_name='answer')
    op.drop_table('answer')
    op.drop_index('ix_game_player_game_id', table_name='game_player')
    op.drop_table('game_player')
    op.drop_index('ix_game_game_code', table_name='game')
    op.drop_table('game')
    op.drop_index('ix_player_session_token', table_name='player')
    op.drop_table('player')
