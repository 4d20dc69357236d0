"""Room membership model."""
from sqlalchemy import (
    Column,
    String,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
import uuid

from partycards.database import Base
from partycards.models.base import get_uuid_column


class RoomPlayer(Base):
    """Membership record for a player in a room.

    ``join_order`` is the judge rotation key: assigned once at join time, never
    renumbered or reused. ``is_judge`` is a display cache only; the judge of
    record lives on the most recent round.
    """
    __tablename__ = "room_players"

    room_player_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    room_id = get_uuid_column(
        ForeignKey("rooms.room_id", ondelete="CASCADE"),
        nullable=False,
    )
    player_id = get_uuid_column(nullable=False)
    username = Column(String(64), nullable=False)

    join_order = Column(Integer, nullable=False)
    score = Column(Integer, nullable=False, default=0)
    is_judge = Column(Boolean, nullable=False, default=False)

    joined_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        UniqueConstraint("room_id", "player_id", name="uq_room_players_room_player"),
        UniqueConstraint("room_id", "join_order", name="uq_room_players_room_join_order"),
    )

    room = relationship("Room", back_populates="players")

    def __repr__(self):
        return f"<RoomPlayer(room_id={self.room_id}, player_id={self.player_id}, join_order={self.join_order}, score={self.score})>"
