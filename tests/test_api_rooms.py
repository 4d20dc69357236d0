"""Tests for the rooms API: lobby, match start, snapshot polling and round actions."""
import pytest
from uuid import uuid4

from httpx import AsyncClient, ASGITransport


API_BASE_URL = "http://test"


def _headers(player_id):
    return {"X-Player-Id": str(player_id)}


async def _create_room(client, deck_id, host_id, **extra):
    payload = {"username": "host", "deck_id": str(deck_id), **extra}
    response = await client.post("/rooms", json=payload, headers=_headers(host_id))
    assert response.status_code == 201, response.text
    return response.json()


async def _join(client, room_id, player_id, username):
    return await client.post(
        f"/rooms/{room_id}/join",
        json={"username": username},
        headers=_headers(player_id),
    )


@pytest.mark.asyncio
async def test_health(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["database"] == "connected"


@pytest.mark.asyncio
async def test_player_header_is_required(test_app, deck_factory):
    deck = await deck_factory()

    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        missing = await client.post("/rooms", json={"username": "host", "deck_id": str(deck.deck_id)})
        malformed = await client.post(
            "/rooms",
            json={"username": "host", "deck_id": str(deck.deck_id)},
            headers={"X-Player-Id": "not-a-uuid"},
        )

    assert missing.status_code == 401
    assert malformed.status_code == 400


@pytest.mark.asyncio
async def test_create_room_with_unknown_deck(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        explicit = await client.post(
            "/rooms",
            json={"username": "host", "deck_id": str(uuid4())},
            headers=_headers(uuid4()),
        )
        # No starter deck is seeded in tests
        default = await client.post("/rooms", json={"username": "host"}, headers=_headers(uuid4()))

    assert explicit.status_code == 404
    assert default.status_code == 404


@pytest.mark.asyncio
async def test_lobby_lookup_and_membership(test_app, deck_factory):
    deck = await deck_factory()
    host_id, guest_id = uuid4(), uuid4()

    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        room = await _create_room(client, deck.deck_id, host_id, max_players=3)
        room_id = room["room_id"]
        assert room["status"] == "waiting"
        assert room["host_player_id"] == str(host_id)
        assert room["created_at"].endswith("Z")

        lobby = (await client.get("/rooms/public")).json()
        listed = [r for r in lobby["rooms"] if r["room_id"] == room_id]
        assert listed and listed[0]["player_count"] == 1
        assert listed[0]["host_username"] == "host"

        by_code = await client.get(f"/rooms/code/{room['room_code'].lower()}")
        assert by_code.status_code == 200
        assert by_code.json()["room_id"] == room_id
        assert (await client.get("/rooms/code/NOPE2345")).status_code == 404

        joined = await _join(client, room_id, guest_id, "guest")
        assert joined.status_code == 200
        assert joined.json()["join_order"] == 1

        assert (await _join(client, room_id, guest_id, "guest")).status_code == 409
        assert (await _join(client, room_id, uuid4(), "third")).status_code == 200
        assert (await _join(client, room_id, uuid4(), "fourth")).status_code == 409
        assert (await _join(client, uuid4(), uuid4(), "lost")).status_code == 404

        left = await client.post(f"/rooms/{room_id}/leave", headers=_headers(host_id))
        assert left.json() == {"success": True, "room_deleted": False}

        snapshot = (await client.get(f"/rooms/{room_id}/snapshot", headers=_headers(guest_id))).json()
        assert snapshot["host_player_id"] == str(guest_id)


@pytest.mark.asyncio
async def test_start_preconditions(test_app, deck_factory):
    deck = await deck_factory()
    small_deck = await deck_factory(answer_count=29)
    host_id, guest_id = uuid4(), uuid4()

    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        room = await _create_room(client, deck.deck_id, host_id)
        room_id = room["room_id"]
        await _join(client, room_id, guest_id, "guest")

        too_few = await client.post(f"/rooms/{room_id}/start", headers=_headers(host_id))
        assert too_few.status_code == 400

        await _join(client, room_id, uuid4(), "third")
        not_host = await client.post(f"/rooms/{room_id}/start", headers=_headers(guest_id))
        assert not_host.status_code == 403

        small_host = uuid4()
        small_room = await _create_room(client, small_deck.deck_id, small_host)
        await _join(client, small_room["room_id"], uuid4(), "a")
        await _join(client, small_room["room_id"], uuid4(), "b")
        short = await client.post(f"/rooms/{small_room['room_id']}/start", headers=_headers(small_host))
        assert short.status_code == 422

        missing = await client.post(f"/rooms/{uuid4()}/start", headers=_headers(host_id))
        assert missing.status_code == 404


@pytest.mark.asyncio
async def test_full_round_over_http(test_app, deck_factory):
    deck = await deck_factory()
    p1, p2, p3 = uuid4(), uuid4(), uuid4()

    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        room = await _create_room(client, deck.deck_id, p1)
        room_id = room["room_id"]
        await _join(client, room_id, p2, "p2")
        await _join(client, room_id, p3, "p3")

        started = await client.post(f"/rooms/{room_id}/start", headers=_headers(p1))
        assert started.status_code == 200
        round_data = started.json()["round"]
        round_id = round_data["round_id"]
        assert round_data["judge_player_id"] == str(p1)

        snap_p2 = (await client.get(f"/rooms/{room_id}/snapshot", headers=_headers(p2))).json()
        snap_p3 = (await client.get(f"/rooms/{room_id}/snapshot", headers=_headers(p3))).json()
        snap_p1 = (await client.get(f"/rooms/{room_id}/snapshot", headers=_headers(p1))).json()
        assert len(snap_p2["hand"]) == 10
        assert snap_p1["viewer_is_judge"] is True
        assert snap_p2["current_round"]["round_id"] == round_id
        assert snap_p2["poll_interval_seconds"] >= 1

        submit_url = f"/rooms/{room_id}/rounds/{round_id}/submissions"

        judge_try = await client.post(
            submit_url, json={"card_id": snap_p1["hand"][0]["card_id"]}, headers=_headers(p1)
        )
        assert judge_try.status_code == 409

        both = await client.post(
            submit_url,
            json={"card_id": snap_p2["hand"][0]["card_id"], "card_ids": [snap_p2["hand"][0]["card_id"]]},
            headers=_headers(p2),
        )
        assert both.status_code == 422

        not_mine = await client.post(
            submit_url, json={"card_id": snap_p3["hand"][0]["card_id"]}, headers=_headers(p2)
        )
        assert not_mine.status_code == 409

        p2_played = await client.post(
            submit_url, json={"card_id": snap_p2["hand"][0]["card_id"]}, headers=_headers(p2)
        )
        assert p2_played.status_code == 200
        p2_submission_id = p2_played.json()["submissions"][0]["submission_id"]

        again = await client.post(
            submit_url, json={"card_id": snap_p2["hand"][1]["card_id"]}, headers=_headers(p2)
        )
        assert again.status_code == 409

        p3_played = await client.post(
            submit_url, json={"card_ids": [snap_p3["hand"][0]["card_id"]]}, headers=_headers(p3)
        )
        assert p3_played.status_code == 200

        # Only the judge sees what was played
        snap_p3 = (await client.get(f"/rooms/{room_id}/snapshot", headers=_headers(p3))).json()
        snap_p1 = (await client.get(f"/rooms/{room_id}/snapshot", headers=_headers(p1))).json()
        assert snap_p1["current_round"]["all_submitted"] is True
        p2_group_for_p3 = next(
            g for g in snap_p3["current_round"]["submissions"] if g["player_id"] == str(p2)
        )
        assert p2_group_for_p3["cards"] == []
        p2_group_for_judge = next(
            g for g in snap_p1["current_round"]["submissions"] if g["player_id"] == str(p2)
        )
        assert p2_group_for_judge["cards"][0]["submission_id"] == p2_submission_id

        winner_url = f"/rooms/{room_id}/rounds/{round_id}/winner"
        not_judge = await client.post(
            winner_url, json={"submission_id": p2_submission_id}, headers=_headers(p2)
        )
        assert not_judge.status_code == 403

        resolved = await client.post(
            winner_url, json={"submission_id": p2_submission_id}, headers=_headers(p1)
        )
        assert resolved.status_code == 200
        outcome = resolved.json()
        assert outcome["resolved"] is True
        assert outcome["winner_player_id"] == str(p2)
        assert outcome["round"]["status"] == "completed"
        assert outcome["next_round"]["judge_player_id"] == str(p2)

        repeat = await client.post(
            winner_url, json={"submission_id": p2_submission_id}, headers=_headers(p1)
        )
        assert repeat.status_code == 200
        assert repeat.json()["resolved"] is False

        late = await client.post(
            submit_url, json={"card_id": snap_p3["hand"][1]["card_id"]}, headers=_headers(p3)
        )
        assert late.status_code == 409

        final = (await client.get(f"/rooms/{room_id}/snapshot", headers=_headers(p3))).json()
        scores = {p["player_id"]: p["score"] for p in final["players"]}
        assert scores == {str(p1): 0, str(p2): 1, str(p3): 0}
        assert [p["is_judge"] for p in final["players"]] == [False, True, False]
        assert final["last_completed_round"]["winner_player_id"] == str(p2)
        assert len(final["hand"]) == 10


@pytest.mark.asyncio
async def test_round_must_belong_to_room(test_app, deck_factory):
    deck = await deck_factory(answer_count=80)
    first_host, second_host = uuid4(), uuid4()

    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        first = await _create_room(client, deck.deck_id, first_host)
        second = await _create_room(client, deck.deck_id, second_host)
        for room, host in ((first, first_host), (second, second_host)):
            await _join(client, room["room_id"], uuid4(), "a")
            await _join(client, room["room_id"], uuid4(), "b")

        started = await client.post(f"/rooms/{first['room_id']}/start", headers=_headers(first_host))
        round_id = started.json()["round"]["round_id"]

        response = await client.post(
            f"/rooms/{second['room_id']}/rounds/{round_id}/winner",
            json={"submission_id": str(uuid4())},
            headers=_headers(second_host),
        )
        snapshot = await client.get(f"/rooms/{uuid4()}/snapshot", headers=_headers(first_host))

    assert response.status_code == 404
    assert snapshot.status_code == 404
