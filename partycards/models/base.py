"""Base utilities for SQLAlchemy models."""
from enum import Enum
import uuid
from sqlalchemy import Column, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.sql import sqltypes


class RoomStatus(str, Enum):
    """Room status enumeration for type safety."""
    WAITING = "waiting"
    PLAYING = "playing"


class RoundStatus(str, Enum):
    """Round status enumeration for type safety."""
    SUBMITTING = "submitting"
    COMPLETED = "completed"


class CardType(str, Enum):
    """Deck card kinds."""
    PROMPT = "prompt"  # black card
    ANSWER = "answer"  # white card


class AdaptiveUUID(sqltypes.TypeDecorator):
    """UUID type using native UUID on PostgreSQL and 32-char hex elsewhere."""

    impl = sqltypes.String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    @staticmethod
    def _coerce_uuid(value):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))

    def process_bind_param(self, value, dialect):
        value = self._coerce_uuid(value)
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        return value.hex

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self._coerce_uuid(value)


def get_uuid_column(*args, **kwargs):
    """Get UUID column type based on database dialect.

    Args:
        *args: Positional arguments to pass to Column (e.g., ForeignKey)
        **kwargs: Keyword arguments to pass to Column (e.g., primary_key=True)

    Returns:
        Column: Configured SQLAlchemy Column for UUID storage

    Example:
        room_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
        judge_id = get_uuid_column(ForeignKey("room_players.player_id"), nullable=True)
    """
    return Column(
        AdaptiveUUID(),
        *args,
        **kwargs
    )
