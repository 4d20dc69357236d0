"""Card inventory service: dealing, replenishing and consuming answer cards."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from typing import List, Sequence
from uuid import UUID
import logging
import random

from partycards.models.deck import PromptCard, AnswerCard
from partycards.models.hand_card import HandCard
from partycards.models.room import Room
from partycards.models.round import Round
from partycards.models.submission import Submission
from partycards.utils.exceptions import (
    CardNotInHandError,
    EmptyDeckError,
    InsufficientCardsError,
    RoomNotFoundError,
)

logger = logging.getLogger(__name__)


class CardInventoryService:
    """Owns the answer-card pool of a room and the hands drawn from it.

    A card is available to deal when it belongs to the room's deck, is not in
    any hand in the room, and has not been submitted during the current match.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _current_match_number(self, room_id: UUID) -> int:
        result = await self.db.execute(
            select(Room.match_number).where(Room.room_id == room_id)
        )
        match_number = result.scalar_one_or_none()
        if match_number is None:
            raise RoomNotFoundError(f"Room {room_id} not found")
        return match_number

    async def consumed_card_ids(self, room_id: UUID, match_number: int) -> set[UUID]:
        """Cards submitted in this room during the given match."""
        result = await self.db.execute(
            select(Submission.card_id)
            .join(Round, Round.round_id == Submission.round_id)
            .where(Round.room_id == room_id)
            .where(Round.match_number == match_number)
        )
        return set(result.scalars().all())

    async def available_card_ids(
        self,
        room_id: UUID,
        deck_id: UUID,
        match_number: int | None = None,
    ) -> List[UUID]:
        """Answer cards that may still be dealt in the room's current match."""
        if match_number is None:
            match_number = await self._current_match_number(room_id)

        in_hands = select(HandCard.card_id).where(HandCard.room_id == room_id)
        consumed = (
            select(Submission.card_id)
            .join(Round, Round.round_id == Submission.round_id)
            .where(Round.room_id == room_id)
            .where(Round.match_number == match_number)
        )

        result = await self.db.execute(
            select(AnswerCard.card_id)
            .where(AnswerCard.deck_id == deck_id)
            .where(AnswerCard.card_id.not_in(in_hands))
            .where(AnswerCard.card_id.not_in(consumed))
        )
        return list(result.scalars().all())

    async def hand_count(self, room_id: UUID, player_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(HandCard.hand_card_id))
            .where(HandCard.room_id == room_id)
            .where(HandCard.player_id == player_id)
        )
        return result.scalar() or 0

    async def deal_initial_hands(
        self,
        room_id: UUID,
        deck_id: UUID,
        player_ids: Sequence[UUID],
        hand_size: int,
        commit: bool = True,
    ) -> dict[UUID, List[UUID]]:
        """Deal ``hand_size`` distinct cards to every player in one batch.

        Args:
            room_id: UUID of the room
            deck_id: UUID of the deck supplying answer cards
            player_ids: Players to deal to
            hand_size: Cards per player
            commit: Commit the batch (False when part of a larger transaction)

        Returns:
            dict: player_id -> list of dealt card ids

        Raises:
            InsufficientCardsError: If the available pool cannot cover the deal
        """
        available = await self.available_card_ids(room_id, deck_id)
        required = len(player_ids) * hand_size

        if len(available) < required:
            raise InsufficientCardsError(
                f"Deck has {len(available)} available answer cards, "
                f"need {required} to deal {hand_size} to {len(player_ids)} players"
            )

        drawn = random.sample(available, required)
        dealt: dict[UUID, List[UUID]] = {}
        for index, player_id in enumerate(player_ids):
            cards = drawn[index * hand_size:(index + 1) * hand_size]
            dealt[player_id] = cards
            self.db.add_all(
                HandCard(room_id=room_id, player_id=player_id, card_id=card_id)
                for card_id in cards
            )

        await self.db.flush()
        if commit:
            await self.db.commit()

        logger.info(f"Dealt {hand_size} cards to each of {len(player_ids)} players in room {room_id}")
        return dealt

    async def replenish(
        self,
        room_id: UUID,
        deck_id: UUID,
        player_id: UUID,
        target_size: int,
    ) -> int:
        """Top a player's hand back up to ``target_size``.

        The hand is re-counted before every insert so overlapping calls for the
        same player stop at the target. A card grabbed by a concurrent dealer
        trips the ``(room_id, card_id)`` constraint and is skipped.

        Returns:
            int: Number of cards added (0 when the hand was already full)
        """
        current = await self.hand_count(room_id, player_id)
        need = target_size - current
        if need <= 0:
            return 0

        candidates = await self.available_card_ids(room_id, deck_id)
        random.shuffle(candidates)

        added = 0
        for card_id in candidates:
            if await self.hand_count(room_id, player_id) >= target_size:
                break

            self.db.add(HandCard(room_id=room_id, player_id=player_id, card_id=card_id))
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.debug(f"Card {card_id} already dealt in room {room_id}, trying next")
                continue
            added += 1

        if added < need and await self.hand_count(room_id, player_id) < target_size:
            logger.warning(
                f"Answer pool exhausted in room {room_id}: player {player_id} "
                f"short by {target_size - current - added} card(s)"
            )
        elif added:
            logger.info(f"Replenished {added} card(s) for player {player_id} in room {room_id}")

        return added

    async def draw_prompt(self, room_id: UUID, deck_id: UUID) -> PromptCard:
        """Pick a prompt card uniformly at random. Prompts may repeat across rounds.

        Raises:
            EmptyDeckError: If the deck has no prompt cards
        """
        result = await self.db.execute(
            select(PromptCard)
            .where(PromptCard.deck_id == deck_id)
            .order_by(func.random())
            .limit(1)
        )
        prompt = result.scalar_one_or_none()
        if prompt is None:
            raise EmptyDeckError(f"Deck {deck_id} has no prompt cards")

        logger.debug(f"Drew prompt {prompt.card_id} for room {room_id}")
        return prompt

    async def consume(
        self,
        room_id: UUID,
        player_id: UUID,
        card_id: UUID,
        commit: bool = True,
    ) -> None:
        """Remove a submitted card from the player's hand for good.

        Raises:
            CardNotInHandError: If the player does not hold the card
        """
        result = await self.db.execute(
            delete(HandCard)
            .where(HandCard.room_id == room_id)
            .where(HandCard.player_id == player_id)
            .where(HandCard.card_id == card_id)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            raise CardNotInHandError(f"Card {card_id} is not in player {player_id}'s hand")

        if commit:
            await self.db.commit()

    async def holds_card(self, room_id: UUID, player_id: UUID, card_id: UUID) -> bool:
        result = await self.db.execute(
            select(HandCard.hand_card_id)
            .where(HandCard.room_id == room_id)
            .where(HandCard.player_id == player_id)
            .where(HandCard.card_id == card_id)
        )
        return result.first() is not None

    async def get_hand(self, room_id: UUID, player_id: UUID, target_size: int) -> List[HandCard]:
        """Load a hand in deal order, trimming anything above ``target_size``."""
        await self.trim_excess(room_id, player_id, target_size)

        result = await self.db.execute(
            select(HandCard)
            .where(HandCard.room_id == room_id)
            .where(HandCard.player_id == player_id)
            .order_by(HandCard.dealt_at, HandCard.hand_card_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def trim_excess(self, room_id: UUID, player_id: UUID, target_size: int) -> int:
        """Delete the most recently dealt cards of an over-full hand.

        An over-full hand means two replenishers raced; the extra cards go back
        to the pool.

        Returns:
            int: Number of cards removed
        """
        result = await self.db.execute(
            select(HandCard.hand_card_id)
            .where(HandCard.room_id == room_id)
            .where(HandCard.player_id == player_id)
            .order_by(HandCard.dealt_at, HandCard.hand_card_id)
        )
        hand_ids = list(result.scalars().all())
        if len(hand_ids) <= target_size:
            return 0

        excess = hand_ids[target_size:]
        await self.db.execute(
            delete(HandCard)
            .where(HandCard.hand_card_id.in_(excess))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        logger.warning(
            f"Player {player_id} held {len(hand_ids)} cards in room {room_id}; "
            f"trimmed {len(excess)} back to {target_size}"
        )
        return len(excess)

    async def clear_hands(self, room_id: UUID, commit: bool = True) -> int:
        """Return every card held in the room to the pool."""
        result = await self.db.execute(
            delete(HandCard)
            .where(HandCard.room_id == room_id)
            .execution_options(synchronize_session=False)
        )
        if commit:
            await self.db.commit()
        return result.rowcount or 0
