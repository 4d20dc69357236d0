import uuid

import pytest
from sqlalchemy import select

from partycards.models import RoomPlayer
from partycards.services import PlayerRosterService, RoomService
from partycards.utils.exceptions import JudgeNotFoundError


@pytest.mark.asyncio
async def test_ordered_players_follow_join_order(db_session, room_factory):
    seated = await room_factory(player_count=4)

    players = await PlayerRosterService(db_session).ordered_players(seated.room_id)

    assert [p.player_id for p in players] == seated.player_ids
    assert [p.join_order for p in players] == [0, 1, 2, 3]


@pytest.mark.asyncio
async def test_rotation_visits_every_player_in_order(db_session, room_factory):
    """Each next judge is one ring index further and never the current judge."""
    seated = await room_factory(player_count=5)
    roster = PlayerRosterService(db_session)

    judge_id = seated.player_ids[0]
    visited = [judge_id]
    for _ in range(len(seated.player_ids) * 2 - 1):
        next_player = await roster.next_judge(seated.room_id, judge_id)
        assert next_player.player_id != judge_id
        judge_id = next_player.player_id
        visited.append(judge_id)

    assert visited == seated.player_ids * 2


@pytest.mark.asyncio
async def test_rotation_wraps_from_last_to_first(db_session, room_factory):
    seated = await room_factory(player_count=3)

    next_player = await PlayerRosterService(db_session).next_judge(
        seated.room_id, seated.player_ids[-1]
    )

    assert next_player.player_id == seated.player_ids[0]


@pytest.mark.asyncio
async def test_next_judge_raises_for_departed_judge(db_session, room_factory):
    seated = await room_factory(player_count=4)
    await RoomService(db_session).leave_room(seated.room_id, seated.player_ids[2])

    roster = PlayerRosterService(db_session)
    with pytest.raises(JudgeNotFoundError):
        await roster.next_judge(seated.room_id, seated.player_ids[2])

    # Remaining players keep their join order; the gap is simply skipped
    next_player = await roster.next_judge(seated.room_id, seated.player_ids[1])
    assert next_player.player_id == seated.player_ids[3]


@pytest.mark.asyncio
async def test_late_joiner_enters_ring_at_the_end(db_session, room_factory):
    seated = await room_factory(player_count=3)
    late_id = uuid.uuid4()
    member = await RoomService(db_session).join_room(seated.room_id, late_id, "latecomer")

    assert member.join_order == 3
    roster = PlayerRosterService(db_session)
    assert (await roster.next_judge(seated.room_id, seated.player_ids[2])).player_id == late_id
    assert (await roster.next_judge(seated.room_id, late_id)).player_id == seated.player_ids[0]


@pytest.mark.asyncio
async def test_advisory_judge_flag_marks_single_player(db_session, room_factory):
    seated = await room_factory(player_count=3)
    roster = PlayerRosterService(db_session)

    await roster.set_advisory_judge_flag(seated.room_id, seated.player_ids[0])
    await roster.set_advisory_judge_flag(seated.room_id, seated.player_ids[1])

    result = await db_session.execute(
        select(RoomPlayer.player_id)
        .where(RoomPlayer.room_id == seated.room_id)
        .where(RoomPlayer.is_judge.is_(True))
    )
    assert list(result.scalars().all()) == [seated.player_ids[1]]


@pytest.mark.asyncio
async def test_award_point_increments_and_reset_clears(db_session, room_factory):
    seated = await room_factory(player_count=3)
    roster = PlayerRosterService(db_session)
    winner_id = seated.player_ids[1]

    await roster.award_point(seated.room_id, winner_id)
    await roster.award_point(seated.room_id, winner_id)

    player = await roster.get_player(seated.room_id, winner_id)
    assert player.score == 2

    await roster.reset_scores(seated.room_id)

    players = await roster.ordered_players(seated.room_id)
    assert all(p.score == 0 for p in players)
    assert not any(p.is_judge for p in players)
