"""Room model: the shared match container."""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
import uuid

from partycards.database import Base
from partycards.models.base import get_uuid_column, RoomStatus


class Room(Base):
    """A room hosting one match at a time.

    ``status`` moves from ``waiting`` to ``playing`` when the first match starts
    and never reverts. Every match start increments ``match_number`` so rounds
    and consumed cards can be scoped to the current match.
    """
    __tablename__ = "rooms"

    room_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    room_code = Column(String(16), unique=True, nullable=False)
    deck_id = get_uuid_column(ForeignKey("decks.deck_id"), nullable=False)
    host_player_id = get_uuid_column(nullable=True)

    status = Column(String(20), nullable=False, default=RoomStatus.WAITING.value)
    max_players = Column(Integer, nullable=False, default=10)
    is_public = Column(Boolean, nullable=False, default=True)
    match_number = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    started_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    deck = relationship("Deck")
    players = relationship(
        "RoomPlayer",
        back_populates="room",
        cascade="all, delete-orphan",
        order_by="RoomPlayer.join_order",
    )

    __table_args__ = (
        Index("ix_rooms_status_public", "status", "is_public"),
    )

    def __repr__(self):
        return f"<Room(id={self.room_id}, code={self.room_code}, status={self.status}, match={self.match_number})>"
