"""Hand model: which answer card is held by which player in a room."""
from sqlalchemy import Column, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
import uuid

from partycards.database import Base
from partycards.models.base import get_uuid_column


class HandCard(Base):
    """An answer card currently held by a player.

    ``(room_id, card_id)`` is unique: a card sits in at most one hand per room.
    """
    __tablename__ = "hand_cards"

    hand_card_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    room_id = get_uuid_column(ForeignKey("rooms.room_id", ondelete="CASCADE"), nullable=False)
    player_id = get_uuid_column(nullable=False)
    card_id = get_uuid_column(ForeignKey("answer_cards.card_id"), nullable=False)

    dealt_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        UniqueConstraint("room_id", "card_id", name="uq_hand_cards_room_card"),
        Index("ix_hand_cards_room_player", "room_id", "player_id"),
    )

    card = relationship("AnswerCard", lazy="joined")

    def __repr__(self):
        return f"<HandCard(room_id={self.room_id}, player_id={self.player_id}, card_id={self.card_id})>"
