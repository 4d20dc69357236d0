"""Deck configuration models: prompt (black) and answer (white) card pools."""
from sqlalchemy import (
    Column,
    String,
    Integer,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
import uuid

from partycards.database import Base
from partycards.models.base import get_uuid_column


class Deck(Base):
    """A named collection of prompt and answer cards."""
    __tablename__ = "decks"

    deck_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    prompt_cards = relationship("PromptCard", back_populates="deck", cascade="all, delete-orphan")
    answer_cards = relationship("AnswerCard", back_populates="deck", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Deck(id={self.deck_id}, name={self.name})>"


class PromptCard(Base):
    """Fill-in-the-blank prompt. ``pick`` is how many answers each player plays."""
    __tablename__ = "prompt_cards"

    card_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    deck_id = get_uuid_column(ForeignKey("decks.deck_id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(String(500), nullable=False)
    pick = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("deck_id", "text", name="uq_prompt_cards_deck_text"),
        CheckConstraint("pick >= 1", name="ck_prompt_cards_pick_positive"),
    )

    deck = relationship("Deck", back_populates="prompt_cards")

    def __repr__(self):
        return f"<PromptCard(id={self.card_id}, pick={self.pick})>"


class AnswerCard(Base):
    """Answer card dealt into player hands."""
    __tablename__ = "answer_cards"

    card_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    deck_id = get_uuid_column(ForeignKey("decks.deck_id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(String(500), nullable=False)

    __table_args__ = (
        UniqueConstraint("deck_id", "text", name="uq_answer_cards_deck_text"),
    )

    deck = relationship("Deck", back_populates="answer_cards")

    def __repr__(self):
        return f"<AnswerCard(id={self.card_id})>"
