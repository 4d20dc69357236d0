"""Room and lobby Pydantic schemas."""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from partycards.schemas.base import BaseSchema


# Request schemas
class CreateRoomRequest(BaseModel):
    """Request to create a new room."""
    username: str = Field(..., min_length=1, max_length=64, description="Host display name")
    deck_id: Optional[UUID] = Field(default=None, description="Deck to play with (default: starter deck)")
    max_players: Optional[int] = Field(default=None, ge=3, le=20, description="Room capacity")
    is_public: bool = Field(default=True, description="List the room in the public lobby")


class JoinRoomRequest(BaseModel):
    """Request to join an existing room."""
    username: str = Field(..., min_length=1, max_length=64, description="Display name")


# Response schemas
class RoomPlayerResponse(BaseSchema):
    """Membership record."""
    player_id: UUID
    username: str
    join_order: int
    score: int
    joined_at: datetime


class RoomResponse(BaseSchema):
    """Room information."""
    room_id: UUID
    room_code: str
    deck_id: UUID
    host_player_id: Optional[UUID]
    status: str
    max_players: int
    is_public: bool
    match_number: int
    created_at: datetime
    started_at: Optional[datetime]


class PublicRoomResponse(BaseSchema):
    """Lobby listing entry."""
    room_id: UUID
    room_code: str
    host_username: str
    deck_name: str
    player_count: int
    max_players: int
    created_at: datetime


class PublicRoomListResponse(BaseSchema):
    """Joinable public rooms."""
    rooms: List[PublicRoomResponse]
    total_count: int


class LeaveRoomResponse(BaseSchema):
    """Result of leaving a room."""
    success: bool
    room_deleted: bool
