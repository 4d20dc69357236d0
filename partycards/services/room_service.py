"""Room service: creating, listing, joining and leaving rooms."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete, update
from sqlalchemy.exc import IntegrityError
from datetime import datetime, UTC
from typing import Optional, List, Dict
from uuid import UUID
import uuid
import logging
import random
import string

from partycards.config import get_settings
from partycards.models.base import RoomStatus, RoundStatus
from partycards.models.deck import Deck
from partycards.models.hand_card import HandCard
from partycards.models.room import Room
from partycards.models.room_player import RoomPlayer
from partycards.models.round import Round
from partycards.models.submission import Submission
from partycards.services.card_inventory_service import CardInventoryService
from partycards.services.round_service import RoundService
from partycards.utils.exceptions import (
    AlreadyInRoomError,
    DeckNotFoundError,
    PartyCardsError,
    RoomFullError,
    RoomNotFoundError,
)

logger = logging.getLogger(__name__)

JOIN_MAX_ATTEMPTS = 3


class RoomService:
    """Service for room lifecycle and membership."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def create_room(
        self,
        host_player_id: UUID,
        username: str,
        deck_id: UUID,
        max_players: Optional[int] = None,
        is_public: bool = True,
    ) -> Room:
        """Create a new room with a unique room code and seat the host.

        Args:
            host_player_id: UUID of the host player
            username: Host's display name
            deck_id: Deck the room plays with
            max_players: Capacity (default: Settings.max_players)
            is_public: Whether the room is listed in the lobby

        Returns:
            Room: Created room

        Raises:
            DeckNotFoundError: If the deck doesn't exist
        """
        deck = await self.db.get(Deck, deck_id)
        if not deck:
            raise DeckNotFoundError(f"Deck {deck_id} not found")

        capacity = max_players or self.settings.max_players
        if capacity < self.settings.min_players:
            capacity = self.settings.min_players

        room_code = await self._generate_unique_room_code()
        now = datetime.now(UTC)

        room = Room(
            room_id=uuid.uuid4(),
            room_code=room_code,
            deck_id=deck_id,
            host_player_id=host_player_id,
            status=RoomStatus.WAITING.value,
            max_players=capacity,
            is_public=is_public,
            match_number=0,
            created_at=now,
        )
        self.db.add(room)

        host = RoomPlayer(
            room_player_id=uuid.uuid4(),
            room_id=room.room_id,
            player_id=host_player_id,
            username=username,
            join_order=0,
            score=0,
            is_judge=False,
            joined_at=now,
        )
        self.db.add(host)
        await self.db.commit()

        logger.info(f"Created room {room.room_id} with code {room_code} (host {host_player_id})")
        return room

    async def _generate_unique_room_code(self, max_attempts: int = 3) -> str:
        """Generate a unique room code.

        Format: ABCD2345 (letters then digits, excluding ambiguous chars)

        Raises:
            PartyCardsError: If unable to generate a unique code after max_attempts
        """
        # Exclude ambiguous characters: O, I, L, 0, 1
        letters = string.ascii_uppercase.replace('O', '').replace('I', '').replace('L', '')
        digits = string.digits.replace('0', '').replace('1', '')

        letter_count = self.settings.room_code_length // 2
        digit_count = self.settings.room_code_length - letter_count

        for attempt in range(max_attempts):
            room_code = (
                ''.join(random.choices(letters, k=letter_count))
                + ''.join(random.choices(digits, k=digit_count))
            )

            existing = await self.get_room_by_code(room_code)
            if not existing:
                return room_code

        raise PartyCardsError("Failed to generate unique room code after maximum attempts")

    async def get_room(self, room_id: UUID) -> Optional[Room]:
        result = await self.db.execute(
            select(Room)
            .where(Room.room_id == room_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_room_by_code(self, room_code: str) -> Optional[Room]:
        result = await self.db.execute(
            select(Room).where(Room.room_code == room_code.upper())
        )
        return result.scalar_one_or_none()

    async def _get_player_count(self, room_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(RoomPlayer.room_player_id))
            .where(RoomPlayer.room_id == room_id)
        )
        return result.scalar() or 0

    async def list_public_rooms(self) -> List[Dict]:
        """Get joinable public rooms.

        Returns only rooms that are:
        - public and still waiting for their first match
        - not full (player_count < max_players)
        - ordered by created_at desc (newest first)

        Returns:
            List[Dict]: Room summaries
        """
        player_counts = (
            select(
                RoomPlayer.room_id,
                func.count(RoomPlayer.room_player_id).label("player_count"),
            )
            .group_by(RoomPlayer.room_id)
            .subquery()
        )

        host = (
            select(RoomPlayer.room_id, RoomPlayer.player_id, RoomPlayer.username)
            .subquery()
        )

        stmt = (
            select(
                Room.room_id,
                Room.room_code,
                Room.max_players,
                Room.created_at,
                Deck.name.label("deck_name"),
                host.c.username.label("host_username"),
                func.coalesce(player_counts.c.player_count, 0).label("player_count"),
            )
            .join(Deck, Room.deck_id == Deck.deck_id)
            .outerjoin(
                host,
                (host.c.room_id == Room.room_id) & (host.c.player_id == Room.host_player_id),
            )
            .outerjoin(player_counts, Room.room_id == player_counts.c.room_id)
            .where(Room.status == RoomStatus.WAITING.value)
            .where(Room.is_public.is_(True))
            .where(func.coalesce(player_counts.c.player_count, 0) < Room.max_players)
            .order_by(Room.created_at.desc())
        )

        result = await self.db.execute(stmt)

        return [
            {
                'room_id': row.room_id,
                'room_code': row.room_code,
                'host_username': row.host_username or "Unknown",
                'deck_name': row.deck_name,
                'player_count': row.player_count,
                'max_players': row.max_players,
                'created_at': row.created_at,
            }
            for row in result.all()
        ]

    async def join_room(self, room_id: UUID, player_id: UUID, username: str) -> RoomPlayer:
        """Add a player to the room at the end of the rotation ring.

        ``join_order`` is ``max + 1``; a concurrent joiner that takes the same
        slot trips the unique constraint and this call retries. Joining a
        match in progress is allowed: the newcomer is dealt a hand straight
        away and enters the judge rotation after the current ring.

        Raises:
            RoomNotFoundError: If the room doesn't exist
            RoomFullError: If the room is at capacity
            AlreadyInRoomError: If the player is already seated
        """
        for attempt in range(JOIN_MAX_ATTEMPTS):
            room = await self.get_room(room_id)
            if not room:
                raise RoomNotFoundError(f"Room {room_id} not found")

            existing = await self.db.execute(
                select(RoomPlayer.room_player_id)
                .where(RoomPlayer.room_id == room_id)
                .where(RoomPlayer.player_id == player_id)
            )
            if existing.first() is not None:
                raise AlreadyInRoomError("Player is already in this room")

            player_count = await self._get_player_count(room_id)
            if player_count >= room.max_players:
                raise RoomFullError(f"Room is full (max {room.max_players} players)")

            max_order = await self.db.scalar(
                select(func.max(RoomPlayer.join_order)).where(RoomPlayer.room_id == room_id)
            )
            join_order = 0 if max_order is None else max_order + 1

            member = RoomPlayer(
                room_player_id=uuid.uuid4(),
                room_id=room_id,
                player_id=player_id,
                username=username,
                join_order=join_order,
                score=0,
                is_judge=False,
                joined_at=datetime.now(UTC),
            )
            self.db.add(member)

            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.info(
                    f"Join slot {join_order} in room {room_id} taken concurrently "
                    f"(attempt {attempt + 1}/{JOIN_MAX_ATTEMPTS})"
                )
                continue

            logger.info(f"Player {player_id} joined room {room_id} at join order {join_order}")

            if room.status == RoomStatus.PLAYING.value:
                await CardInventoryService(self.db).replenish(
                    room_id, room.deck_id, player_id, self.settings.hand_size
                )

            return member

        raise PartyCardsError(f"Could not join room {room_id}, please try again")

    async def leave_room(self, room_id: UUID, player_id: UUID) -> bool:
        """Remove a player from the room.

        The player's hand goes back to the pool. Remaining players keep their
        join order. If the host leaves, the seat with the lowest join order
        becomes host. If the judge leaves mid-round, that round is closed
        without a winner and the match moves on.

        Returns:
            bool: True if the room was deleted (was empty), False otherwise

        Raises:
            RoomNotFoundError: If the room doesn't exist
        """
        room = await self.get_room(room_id)
        if not room:
            raise RoomNotFoundError(f"Room {room_id} not found")

        was_host = room.host_player_id == player_id

        result = await self.db.execute(
            delete(RoomPlayer)
            .where(RoomPlayer.room_id == room_id)
            .where(RoomPlayer.player_id == player_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return False

        await self.db.execute(
            delete(HandCard)
            .where(HandCard.room_id == room_id)
            .where(HandCard.player_id == player_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(f"Player {player_id} left room {room_id}")

        remaining_count = await self._get_player_count(room_id)
        if remaining_count == 0:
            await self._delete_empty_room(room_id)
            return True

        if was_host:
            await self._reassign_host(room_id)

        await self._close_orphaned_round(room_id, player_id)
        return False

    async def _reassign_host(self, room_id: UUID) -> None:
        result = await self.db.execute(
            select(RoomPlayer.player_id)
            .where(RoomPlayer.room_id == room_id)
            .order_by(RoomPlayer.join_order)
            .limit(1)
        )
        new_host_id = result.scalar_one_or_none()
        if new_host_id is None:
            return

        await self.db.execute(
            update(Room)
            .where(Room.room_id == room_id)
            .values(host_player_id=new_host_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(f"Reassigned host to player {new_host_id} in room {room_id}")

    async def _close_orphaned_round(self, room_id: UUID, departed_player_id: UUID) -> None:
        """Close the submitting round of a departed judge and advance past it."""
        rounds = RoundService(self.db)
        active = await rounds.get_active_round(room_id)
        if not active or active.judge_player_id != departed_player_id:
            return

        round_id = active.round_id
        result = await self.db.execute(
            update(Round)
            .where(Round.round_id == round_id)
            .where(Round.status == RoundStatus.SUBMITTING.value)
            .values(status=RoundStatus.COMPLETED.value, completed_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if result.rowcount == 0:
            return

        logger.warning(
            f"Judge {departed_player_id} left room {room_id}; closed round {round_id} without a winner"
        )
        closed_round = await rounds.get_round(round_id)
        await rounds.advance(closed_round)

    async def _delete_empty_room(self, room_id: UUID) -> None:
        """Delete an empty room and everything played in it."""
        round_ids = select(Round.round_id).where(Round.room_id == room_id)

        await self.db.execute(
            delete(Submission)
            .where(Submission.round_id.in_(round_ids))
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(Round).where(Round.room_id == room_id).execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(HandCard).where(HandCard.room_id == room_id).execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(Room).where(Room.room_id == room_id).execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(f"Deleted empty room {room_id}")
