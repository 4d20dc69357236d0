from datetime import datetime, UTC

import pytest
from sqlalchemy import update

from partycards.models import Round, RoundStatus
from partycards.services import MatchService, RoundService
from partycards.tasks.round_recovery import run_round_recovery


async def _strand_room(db, seated):
    """Start a match, then complete its round without opening the next one."""
    first_round = await MatchService(db).start_match(seated.room_id, seated.host_id)
    await db.execute(
        update(Round)
        .where(Round.round_id == first_round.round_id)
        .values(status=RoundStatus.COMPLETED.value, completed_at=datetime.now(UTC))
    )
    await db.commit()
    return first_round


@pytest.mark.asyncio
async def test_recovery_reopens_stranded_rooms(session_factory, db_session, room_factory):
    stranded = await room_factory(player_count=3)
    healthy = await room_factory(player_count=3)
    waiting = await room_factory(player_count=3)
    await _strand_room(db_session, stranded)
    healthy_round = await MatchService(db_session).start_match(healthy.room_id, healthy.host_id)

    stats = await run_round_recovery(session_factory)

    assert stats == {'checked': 1, 'recovered': 1, 'failed': 0}

    rounds = RoundService(db_session)
    reopened = await rounds.get_active_round(stranded.room_id)
    assert reopened.judge_player_id == stranded.player_ids[1]
    assert (await rounds.get_active_round(healthy.room_id)).round_id == healthy_round.round_id
    assert await rounds.get_active_round(waiting.room_id) is None


@pytest.mark.asyncio
async def test_recovery_with_nothing_to_do(session_factory, room_factory):
    await room_factory(player_count=3)

    stats = await run_round_recovery(session_factory)

    assert stats == {'checked': 0, 'recovered': 0, 'failed': 0}
