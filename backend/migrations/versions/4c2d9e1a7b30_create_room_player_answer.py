"""create room, player and answer tables

Revision ID: 4c2d9e1a7b30
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2d9e1a7b30'
down_revision = None
branch_labels = None
depends_on = None

room_state = sa.Enum('WAITING', 'ANSWERING', 'JUDGING', name='room_state')
player_role = sa.Enum('HOST', 'PLAYER', name='player_role')
answer_type = sa.Enum('TEXT', 'DRAWING', name='answer_type')


def upgrade():
    op.create_table(
        'room',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('room_code', sa.String(length=12), nullable=False),
        sa.Column('host_id', sa.String(length=36), nullable=False),
        sa.Column('state', room_state, nullable=False),
        sa.Column('current_prompt', sa.Text(), nullable=True),
        sa.Column('prompt_pool', sa.JSON(), nullable=False),
        sa.Column('used_prompts', sa.JSON(), nullable=False),
        sa.Column('last_judge_result', sa.Boolean(), nullable=True),
        sa.Column('judged_at', sa.DateTime(), nullable=True),
        sa.Column('commentary', sa.JSON(), nullable=False),
        sa.Column('round_seq', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_room_room_code', 'room', ['room_code'])
    op.create_index('ix_room_expires_at', 'room', ['expires_at'])

    op.create_table(
        'player',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('room_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('role', player_role, nullable=False),
        sa.Column('connected', sa.Boolean(), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_player_room_id', 'player', ['room_id'])

    op.create_table(
        'answer',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('room_id', sa.String(length=36), nullable=False),
        sa.Column('player_id', sa.String(length=36), nullable=False),
        sa.Column('player_name', sa.String(length=64), nullable=False),
        sa.Column('answer_type', answer_type, nullable=False),
        sa.Column('text_answer', sa.Text(), nullable=True),
        sa.Column('drawing_data', sa.Text(), nullable=True),
        sa.Column('round_seq', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_answer_room_id', 'answer', ['room_id'])


def downgrade():
    op.drop_index('ix_answer_room_id', table_name='answer')
    op.drop_table('answer')
    op.drop_index('ix_player_room_id', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_room_expires_at', table_name='room')
    op.drop_index('ix_room_room_code', table_name='room')
    op.drop_table('room')
    answer_type.drop(op.get_bind(), checkfirst=True)
    player_role.drop(op.get_bind(), checkfirst=True)
    room_state.drop(op.get_bind(), checkfirst=True)
