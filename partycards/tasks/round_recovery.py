"""Background sweep for playing rooms stuck without a submitting round."""
import asyncio
import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker
from partycards.database import AsyncSessionLocal
from partycards.models.base import RoomStatus, RoundStatus
from partycards.models.room import Room
from partycards.models.round import Round
from partycards.services.match_service import MatchService

logger = logging.getLogger(__name__)

# Track if recovery is running to prevent concurrent executions
_recovery_task_running = False


async def run_round_recovery(session_factory: Optional[async_sessionmaker] = None) -> Dict[str, int]:
    """Re-run ``advance`` for every playing room that has no submitting round.

    A room lands in that state when the winner of a round was recorded but
    replenishing hands or opening the next round failed afterwards. Each room
    is repaired in its own session so one broken deck cannot block the rest.

    Returns:
        dict: ``checked``, ``recovered`` and ``failed`` room counts
    """
    global _recovery_task_running

    stats = {'checked': 0, 'recovered': 0, 'failed': 0}

    if _recovery_task_running:
        logger.debug("Round recovery already running, skipping")
        return stats

    _recovery_task_running = True
    factory = session_factory or AsyncSessionLocal
    try:
        async with factory() as db:
            active_rooms = select(Round.room_id).where(Round.status == RoundStatus.SUBMITTING.value)
            result = await db.execute(
                select(Room.room_id)
                .where(Room.status == RoomStatus.PLAYING.value)
                .where(Room.room_id.not_in(active_rooms))
            )
            stuck_room_ids = list(result.scalars().all())

        stats['checked'] = len(stuck_room_ids)
        for room_id in stuck_room_ids:
            try:
                async with factory() as db:
                    round_obj = await MatchService(db).ensure_active_round(room_id)
                if round_obj is not None:
                    stats['recovered'] += 1
            except Exception as e:
                stats['failed'] += 1
                logger.error(f"Could not recover room {room_id}: {e}", exc_info=True)

        if stuck_room_ids:
            logger.info(
                f"Round recovery completed: {stats['recovered']} recovered, "
                f"{stats['failed']} failed of {stats['checked']} stuck rooms"
            )
        return stats
    finally:
        _recovery_task_running = False


async def schedule_periodic_recovery(interval_seconds: int = 30) -> None:
    """Schedule round recovery to run periodically.

    Args:
        interval_seconds: Seconds between sweeps (default 30)
    """
    logger.info(f"Starting round recovery scheduler (interval: {interval_seconds}s)")

    while True:
        try:
            await asyncio.sleep(interval_seconds)
            await run_round_recovery()
        except asyncio.CancelledError:
            logger.info("Round recovery scheduler cancelled")
            break
        except Exception as e:
            logger.error(f"Unexpected error in recovery scheduler: {e}", exc_info=True)
            await asyncio.sleep(interval_seconds)
