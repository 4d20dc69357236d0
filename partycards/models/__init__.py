"""Database models."""
from partycards.models.deck import Deck, PromptCard, AnswerCard
from partycards.models.room import Room
from partycards.models.room_player import RoomPlayer
from partycards.models.round import Round
from partycards.models.submission import Submission
from partycards.models.hand_card import HandCard
from partycards.models.base import RoomStatus, RoundStatus, CardType

__all__ = [
    "Deck",
    "PromptCard",
    "AnswerCard",
    "Room",
    "RoomPlayer",
    "Round",
    "Submission",
    "HandCard",
    "RoomStatus",
    "RoundStatus",
    "CardType",
]
