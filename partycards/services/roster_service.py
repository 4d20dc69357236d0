"""Player roster service: join-order ring and judge rotation."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from typing import List, Optional
from uuid import UUID
import logging

from partycards.models.room_player import RoomPlayer
from partycards.utils.exceptions import JudgeNotFoundError

logger = logging.getLogger(__name__)


class PlayerRosterService:
    """Service for the ordered player ring of a room."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def ordered_players(self, room_id: UUID) -> List[RoomPlayer]:
        """Get players sorted by join order. This ordering is the rotation ring.

        Args:
            room_id: UUID of the room

        Returns:
            List[RoomPlayer]: Players, lowest join_order first
        """
        result = await self.db.execute(
            select(RoomPlayer)
            .where(RoomPlayer.room_id == room_id)
            .order_by(RoomPlayer.join_order)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_player(self, room_id: UUID, player_id: UUID) -> Optional[RoomPlayer]:
        """Get a membership record, or None if the player is not in the room."""
        result = await self.db.execute(
            select(RoomPlayer)
            .where(RoomPlayer.room_id == room_id)
            .where(RoomPlayer.player_id == player_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def next_judge(self, room_id: UUID, current_judge_id: UUID) -> RoomPlayer:
        """Resolve the player after the current judge on the ring.

        Args:
            room_id: UUID of the room
            current_judge_id: Judge of the round just completed

        Returns:
            RoomPlayer: Player at index (i + 1) mod n

        Raises:
            JudgeNotFoundError: If the current judge has left the roster
        """
        players = await self.ordered_players(room_id)

        for index, player in enumerate(players):
            if player.player_id == current_judge_id:
                next_player = players[(index + 1) % len(players)]
                logger.debug(
                    f"Judge rotation in room {room_id}: index {index} -> "
                    f"{(index + 1) % len(players)} of {len(players)}"
                )
                return next_player

        raise JudgeNotFoundError(
            f"Judge {current_judge_id} is not on the roster of room {room_id}"
        )

    async def set_advisory_judge_flag(self, room_id: UUID, judge_id: UUID) -> None:
        """Refresh the display-only ``is_judge`` flag.

        Round.judge_player_id stays the source of truth; callers treat a
        failure here as non-fatal.
        """
        await self.db.execute(
            update(RoomPlayer)
            .where(RoomPlayer.room_id == room_id)
            .values(is_judge=(RoomPlayer.player_id == judge_id))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def award_point(self, room_id: UUID, player_id: UUID, commit: bool = True) -> bool:
        """Increment a player's score in place (``score = score + 1``).

        Returns:
            bool: False when the player is no longer on the roster
        """
        result = await self.db.execute(
            update(RoomPlayer)
            .where(RoomPlayer.room_id == room_id)
            .where(RoomPlayer.player_id == player_id)
            .values(score=RoomPlayer.score + 1)
            .execution_options(synchronize_session=False)
        )
        if commit:
            await self.db.commit()
        return result.rowcount > 0

    async def reset_scores(self, room_id: UUID, commit: bool = True) -> None:
        await self.db.execute(
            update(RoomPlayer)
            .where(RoomPlayer.room_id == room_id)
            .values(score=0, is_judge=False)
            .execution_options(synchronize_session=False)
        )
        if commit:
            await self.db.commit()
