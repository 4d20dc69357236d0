"""initial schema

Creates the deck, room, round, submission and hand tables, including:
- uq_rounds_one_submitting_per_room: partial unique index allowing at most
  one submitting round per room
- uq_hand_cards_room_card: a card sits in at most one hand per room
- uq_submissions_round_player_slot / uq_submissions_round_card: one card per
  pick slot and no card played twice in a round

Revision ID: 0001
Revises:
Create Date: 2026-09-28 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from partycards.migrations.util import get_uuid_type, get_timestamp_default


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SUBMITTING_PREDICATE = sa.text("status = 'submitting'")


def upgrade() -> None:
    """Create Party Cards tables."""
    uuid = get_uuid_type()
    timestamp_default = get_timestamp_default()

    op.create_table(
        'decks',
        sa.Column('deck_id', uuid, primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
    )

    op.create_table(
        'prompt_cards',
        sa.Column('card_id', uuid, primary_key=True),
        sa.Column('deck_id', uuid, sa.ForeignKey('decks.deck_id', ondelete='CASCADE'), nullable=False),
        sa.Column('text', sa.String(length=500), nullable=False),
        sa.Column('pick', sa.Integer(), nullable=False, server_default='1'),
        sa.UniqueConstraint('deck_id', 'text', name='uq_prompt_cards_deck_text'),
        sa.CheckConstraint('pick >= 1', name='ck_prompt_cards_pick_positive'),
    )
    op.create_index('ix_prompt_cards_deck_id', 'prompt_cards', ['deck_id'])

    op.create_table(
        'answer_cards',
        sa.Column('card_id', uuid, primary_key=True),
        sa.Column('deck_id', uuid, sa.ForeignKey('decks.deck_id', ondelete='CASCADE'), nullable=False),
        sa.Column('text', sa.String(length=500), nullable=False),
        sa.UniqueConstraint('deck_id', 'text', name='uq_answer_cards_deck_text'),
    )
    op.create_index('ix_answer_cards_deck_id', 'answer_cards', ['deck_id'])

    op.create_table(
        'rooms',
        sa.Column('room_id', uuid, primary_key=True),
        sa.Column('room_code', sa.String(length=16), nullable=False, unique=True),
        sa.Column('deck_id', uuid, sa.ForeignKey('decks.deck_id'), nullable=False),
        sa.Column('host_player_id', uuid, nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='waiting'),
        sa.Column('max_players', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('match_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_rooms_status_public', 'rooms', ['status', 'is_public'])

    op.create_table(
        'room_players',
        sa.Column('room_player_id', uuid, primary_key=True),
        sa.Column('room_id', uuid, sa.ForeignKey('rooms.room_id', ondelete='CASCADE'), nullable=False),
        sa.Column('player_id', uuid, nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('join_order', sa.Integer(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_judge', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.UniqueConstraint('room_id', 'player_id', name='uq_room_players_room_player'),
        sa.UniqueConstraint('room_id', 'join_order', name='uq_room_players_room_join_order'),
    )

    op.create_table(
        'rounds',
        sa.Column('round_id', uuid, primary_key=True),
        sa.Column('room_id', uuid, sa.ForeignKey('rooms.room_id', ondelete='CASCADE'), nullable=False),
        sa.Column('match_number', sa.Integer(), nullable=False),
        sa.Column('created_seq', sa.Integer(), nullable=False),
        sa.Column('prompt_card_id', uuid, sa.ForeignKey('prompt_cards.card_id'), nullable=False),
        sa.Column('judge_player_id', uuid, nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='submitting'),
        sa.Column('winner_player_id', uuid, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('room_id', 'created_seq', name='uq_rounds_room_created_seq'),
    )
    op.create_index(
        'uq_rounds_one_submitting_per_room',
        'rounds',
        ['room_id'],
        unique=True,
        postgresql_where=SUBMITTING_PREDICATE,
        sqlite_where=SUBMITTING_PREDICATE,
    )
    op.create_index('ix_rounds_room_status', 'rounds', ['room_id', 'status'])

    op.create_table(
        'submissions',
        sa.Column('submission_id', uuid, primary_key=True),
        sa.Column('round_id', uuid, sa.ForeignKey('rounds.round_id', ondelete='CASCADE'), nullable=False),
        sa.Column('player_id', uuid, nullable=False),
        sa.Column('card_id', uuid, sa.ForeignKey('answer_cards.card_id'), nullable=False),
        sa.Column('pick_slot', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.UniqueConstraint('round_id', 'player_id', 'pick_slot', name='uq_submissions_round_player_slot'),
        sa.UniqueConstraint('round_id', 'card_id', name='uq_submissions_round_card'),
    )
    op.create_index('ix_submissions_round_id', 'submissions', ['round_id'])

    op.create_table(
        'hand_cards',
        sa.Column('hand_card_id', uuid, primary_key=True),
        sa.Column('room_id', uuid, sa.ForeignKey('rooms.room_id', ondelete='CASCADE'), nullable=False),
        sa.Column('player_id', uuid, nullable=False),
        sa.Column('card_id', uuid, sa.ForeignKey('answer_cards.card_id'), nullable=False),
        sa.Column('dealt_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.UniqueConstraint('room_id', 'card_id', name='uq_hand_cards_room_card'),
    )
    op.create_index('ix_hand_cards_room_player', 'hand_cards', ['room_id', 'player_id'])


def downgrade() -> None:
    """Drop Party Cards tables."""
    op.drop_index('ix_hand_cards_room_player', table_name='hand_cards')
    op.drop_table('hand_cards')

    op.drop_index('ix_submissions_round_id', table_name='submissions')
    op.drop_table('submissions')

    op.drop_index('ix_rounds_room_status', table_name='rounds')
    op.drop_index('uq_rounds_one_submitting_per_room', table_name='rounds')
    op.drop_table('rounds')

    op.drop_table('room_players')

    op.drop_index('ix_rooms_status_public', table_name='rooms')
    op.drop_table('rooms')

    op.drop_index('ix_answer_cards_deck_id', table_name='answer_cards')
    op.drop_table('answer_cards')

    op.drop_index('ix_prompt_cards_deck_id', table_name='prompt_cards')
    op.drop_table('prompt_cards')

    op.drop_table('decks')
