"""create game, round and answer history tables

Revision ID: 1a7c3e9d2b40
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a7c3e9d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('room_code', sa.String(length=4), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('game') as batch_op:
        batch_op.create_index(batch_op.f('ix_game_room_code'), ['room_code'], unique=False)

    op.create_table(
        'round',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('variant', sa.String(length=32), nullable=False),
        sa.Column('options', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('round') as batch_op:
        batch_op.create_index(batch_op.f('ix_round_game_id'), ['game_id'], unique=False)

    op.create_table(
        'answer',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('player_name', sa.String(length=64), nullable=False),
        sa.Column('team_id', sa.String(length=4), nullable=True),
        sa.Column('answer_text', sa.Text(), nullable=False),
        sa.Column('response_time_ms', sa.Integer(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['round_id'], ['round.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('answer') as batch_op:
        batch_op.create_index(batch_op.f('ix_answer_round_id'), ['round_id'], unique=False)


def downgrade():
    with op.batch_alter_table('answer') as batch_op:
        batch_op.drop_index(batch_op.f('ix_answer_round_id'))
    op.drop_table('answer')
    with op.batch_alter_table('round') as batch_op:
        batch_op.drop_index(batch_op.f('ix_round_game_id'))
    op.drop_table('round')
    with op.batch_alter_table('game') as batch_op:
        batch_op.drop_index(batch_op.f('ix_game_room_code'))
    op.drop_table('game')
