"""Round model for the judge/submission cycle."""
from sqlalchemy import (
    Column,
    String,
    Integer,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
import uuid

from partycards.database import Base
from partycards.models.base import get_uuid_column, RoundStatus

SUBMITTING_PREDICATE = text("status = 'submitting'")


class Round(Base):
    """One prompt, one judge, many submissions.

    At most one round per room may be ``submitting``. The partial unique index
    below enforces that in the store so concurrent creators cannot both win.
    """
    __tablename__ = "rounds"

    round_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    room_id = get_uuid_column(ForeignKey("rooms.room_id", ondelete="CASCADE"), nullable=False)
    match_number = Column(Integer, nullable=False)
    created_seq = Column(Integer, nullable=False)

    prompt_card_id = get_uuid_column(ForeignKey("prompt_cards.card_id"), nullable=False)
    judge_player_id = get_uuid_column(nullable=False)
    status = Column(String(20), nullable=False, default=RoundStatus.SUBMITTING.value)
    winner_player_id = get_uuid_column(nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    prompt_card = relationship("PromptCard", lazy="joined")
    submissions = relationship(
        "Submission",
        back_populates="round",
        cascade="all, delete-orphan",
        order_by="Submission.created_at",
    )

    __table_args__ = (
        UniqueConstraint("room_id", "created_seq", name="uq_rounds_room_created_seq"),
        Index(
            "uq_rounds_one_submitting_per_room",
            "room_id",
            unique=True,
            postgresql_where=SUBMITTING_PREDICATE,
            sqlite_where=SUBMITTING_PREDICATE,
        ),
        Index("ix_rounds_room_status", "room_id", "status"),
    )

    @property
    def is_submitting(self) -> bool:
        return self.status == RoundStatus.SUBMITTING.value

    def __repr__(self):
        return f"<Round(id={self.round_id}, room_id={self.room_id}, seq={self.created_seq}, status={self.status})>"
