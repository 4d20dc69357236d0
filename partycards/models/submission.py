"""Submission model: one answer card per pick slot."""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
import uuid

from partycards.database import Base
from partycards.models.base import get_uuid_column


class Submission(Base):
    """A card played into a round by a non-judge player."""
    __tablename__ = "submissions"

    submission_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    round_id = get_uuid_column(ForeignKey("rounds.round_id", ondelete="CASCADE"), nullable=False, index=True)
    player_id = get_uuid_column(nullable=False)
    card_id = get_uuid_column(ForeignKey("answer_cards.card_id"), nullable=False)
    pick_slot = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        UniqueConstraint("round_id", "player_id", "pick_slot", name="uq_submissions_round_player_slot"),
        UniqueConstraint("round_id", "card_id", name="uq_submissions_round_card"),
    )

    round = relationship("Round", back_populates="submissions")
    card = relationship("AnswerCard", lazy="joined")

    def __repr__(self):
        return f"<Submission(id={self.submission_id}, round_id={self.round_id}, player_id={self.player_id}, slot={self.pick_slot})>"
