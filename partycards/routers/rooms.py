"""Rooms API router: lobby, membership, match start, snapshot and round actions."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID
import logging

from partycards.config import get_settings
from partycards.database import get_db
from partycards.dependencies import get_current_player_id
from partycards.models.deck import Deck
from partycards.schemas.game import (
    RoomSnapshotResponse,
    RoundResponse,
    SelectWinnerRequest,
    StartMatchResponse,
    SubmissionResponse,
    SubmitCardsRequest,
    SubmitCardsResponse,
    WinnerResponse,
)
from partycards.schemas.room import (
    CreateRoomRequest,
    JoinRoomRequest,
    LeaveRoomResponse,
    PublicRoomListResponse,
    PublicRoomResponse,
    RoomPlayerResponse,
    RoomResponse,
)
from partycards.services import MatchService, RoomService, RoundService
from partycards.utils.exceptions import (
    DeckNotFoundError,
    NotEnoughPlayersError,
    NotHostError,
    NotInRoomError,
    NotJudgeError,
    PartyCardsError,
    PreconditionError,
    ResourceExhaustedError,
    RoomNotFoundError,
    RoundNotFoundError,
    SubmissionNotFoundError,
)

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/rooms", tags=["rooms"])

NOT_FOUND_ERRORS = (RoomNotFoundError, RoundNotFoundError, SubmissionNotFoundError, DeckNotFoundError)
FORBIDDEN_ERRORS = (NotJudgeError, NotHostError, NotInRoomError)


def _http_error(exc: PartyCardsError) -> HTTPException:
    """Map a game error to the HTTP status the client sees. The message is passed through."""
    if isinstance(exc, NOT_FOUND_ERRORS):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, NotEnoughPlayersError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, FORBIDDEN_ERRORS):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, PreconditionError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ResourceExhaustedError):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


async def _resolve_deck_id(db: AsyncSession, deck_id: UUID | None) -> UUID:
    if deck_id:
        return deck_id

    result = await db.execute(select(Deck.deck_id).where(Deck.name == settings.default_deck_name))
    default_deck_id = result.scalar_one_or_none()
    if default_deck_id is None:
        raise DeckNotFoundError(f"Default deck '{settings.default_deck_name}' is not installed")
    return default_deck_id


async def _load_room_round(
    round_service: RoundService,
    room_id: UUID,
    round_id: UUID,
):
    round_obj = await round_service.get_round(round_id)
    if not round_obj or round_obj.room_id != room_id:
        raise RoundNotFoundError(f"Round {round_id} not found in room {room_id}")
    return round_obj


@router.get("/public", response_model=PublicRoomListResponse)
async def list_public_rooms(db: AsyncSession = Depends(get_db)):
    """Get joinable public rooms, newest first."""
    try:
        rooms_data = await RoomService(db).list_public_rooms()
        rooms = [PublicRoomResponse(**room) for room in rooms_data]
        return PublicRoomListResponse(rooms=rooms, total_count=len(rooms))
    except Exception as e:
        logger.error(f"Error listing public rooms: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list rooms")


@router.post("", response_model=RoomResponse, status_code=201)
async def create_room(
    request: CreateRoomRequest,
    player_id: UUID = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a room and seat the caller as host."""
    try:
        deck_id = await _resolve_deck_id(db, request.deck_id)
        room = await RoomService(db).create_room(
            host_player_id=player_id,
            username=request.username,
            deck_id=deck_id,
            max_players=request.max_players,
            is_public=request.is_public,
        )
        return RoomResponse.model_validate(room)
    except PartyCardsError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error creating room: {type(e).__name__}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create room")


@router.get("/code/{room_code}", response_model=RoomResponse)
async def get_room_by_code(room_code: str, db: AsyncSession = Depends(get_db)):
    """Look up a room from the code players share with each other."""
    room = await RoomService(db).get_room_by_code(room_code)
    if not room:
        raise HTTPException(status_code=404, detail=f"Room {room_code} not found")
    return RoomResponse.model_validate(room)


@router.post("/{room_id}/join", response_model=RoomPlayerResponse)
async def join_room(
    room_id: UUID,
    request: JoinRoomRequest,
    player_id: UUID = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    """Join a room at the end of the judge rotation."""
    try:
        member = await RoomService(db).join_room(room_id, player_id, request.username)
        return RoomPlayerResponse.model_validate(member)
    except PartyCardsError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error joining room {room_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to join room")


@router.post("/{room_id}/leave", response_model=LeaveRoomResponse)
async def leave_room(
    room_id: UUID,
    player_id: UUID = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    """Leave a room. The last player out deletes it."""
    try:
        room_deleted = await RoomService(db).leave_room(room_id, player_id)
        return LeaveRoomResponse(success=True, room_deleted=room_deleted)
    except PartyCardsError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error leaving room {room_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to leave room")


@router.post("/{room_id}/start", response_model=StartMatchResponse)
async def start_match(
    room_id: UUID,
    player_id: UUID = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    """Start a match (or a rematch). Host only."""
    try:
        first_round = await MatchService(db).start_match(room_id, requesting_player_id=player_id)
        return StartMatchResponse(round=RoundResponse.model_validate(first_round))
    except PartyCardsError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error starting match in room {room_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to start match")


@router.get("/{room_id}/snapshot", response_model=RoomSnapshotResponse)
async def get_snapshot(
    room_id: UUID,
    player_id: UUID = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    """Full room state for the caller. Clients poll this and replace their state."""
    try:
        snapshot = await MatchService(db).snapshot(room_id, player_id)
        return RoomSnapshotResponse.model_validate(snapshot)
    except PartyCardsError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error building snapshot for room {room_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load room")


@router.post("/{room_id}/rounds/{round_id}/submissions", response_model=SubmitCardsResponse)
async def submit_cards(
    room_id: UUID,
    round_id: UUID,
    request: SubmitCardsRequest,
    player_id: UUID = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    """Play a card (or a multi-pick selection) into the submitting round."""
    try:
        match_service = MatchService(db)
        await match_service.ensure_active_round(room_id)

        round_service = match_service.rounds
        await _load_room_round(round_service, room_id, round_id)

        if request.card_ids is not None:
            submissions = await round_service.submit_cards(round_id, player_id, request.card_ids)
        else:
            submissions = [await round_service.submit(round_id, player_id, request.card_id)]

        return SubmitCardsResponse(
            submissions=[SubmissionResponse.model_validate(s) for s in submissions]
        )
    except PartyCardsError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error submitting to round {round_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit cards")


@router.post("/{room_id}/rounds/{round_id}/winner", response_model=WinnerResponse)
async def select_winner(
    room_id: UUID,
    round_id: UUID,
    request: SelectWinnerRequest,
    player_id: UUID = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    """Judge picks the winning submission.

    A repeated or racing call for an already completed round succeeds with
    ``resolved = false`` and awards nothing.
    """
    try:
        match_service = MatchService(db)
        await match_service.ensure_active_round(room_id)

        round_service = match_service.rounds
        await _load_room_round(round_service, room_id, round_id)

        outcome = await round_service.resolve_winner(round_id, request.submission_id, player_id)
        return WinnerResponse(
            resolved=outcome.resolved,
            round=RoundResponse.model_validate(outcome.round),
            winner_player_id=outcome.winner_player_id,
            next_round=RoundResponse.model_validate(outcome.next_round) if outcome.next_round else None,
        )
    except PartyCardsError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error selecting winner for round {round_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to select winner")
