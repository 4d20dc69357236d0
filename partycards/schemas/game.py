"""Round, submission and snapshot Pydantic schemas."""
from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from partycards.schemas.base import BaseSchema


# Request schemas
class SubmitCardsRequest(BaseModel):
    """Play one card, or an ordered selection for multi-pick prompts.

    Exactly one of ``card_id`` and ``card_ids`` must be given.
    """
    card_id: Optional[UUID] = None
    card_ids: Optional[List[UUID]] = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def validate_selection(self):
        if (self.card_id is None) == (self.card_ids is None):
            raise ValueError("Provide either card_id or card_ids")
        return self


class SelectWinnerRequest(BaseModel):
    """Judge's pick."""
    submission_id: UUID


# Response schemas
class RoundResponse(BaseSchema):
    """Round information."""
    round_id: UUID
    room_id: UUID
    match_number: int
    created_seq: int
    judge_player_id: UUID
    status: str
    winner_player_id: Optional[UUID]
    created_at: datetime
    completed_at: Optional[datetime]


class SubmissionResponse(BaseSchema):
    """A played card."""
    submission_id: UUID
    round_id: UUID
    player_id: UUID
    card_id: UUID
    pick_slot: int
    created_at: datetime


class SubmitCardsResponse(BaseSchema):
    submissions: List[SubmissionResponse]


class WinnerResponse(BaseSchema):
    """Outcome of a winner selection.

    ``resolved`` is False when another client had already completed the round.
    """
    resolved: bool
    round: RoundResponse
    winner_player_id: Optional[UUID]
    next_round: Optional[RoundResponse]


class StartMatchResponse(BaseSchema):
    round: RoundResponse


class SnapshotPlayer(BaseSchema):
    player_id: UUID
    username: str
    join_order: int
    score: int
    is_judge: bool
    is_host: bool


class SnapshotCard(BaseSchema):
    card_id: UUID
    text: str


class SnapshotSubmittedCard(BaseSchema):
    submission_id: UUID
    card_id: UUID
    text: str
    pick_slot: int


class SnapshotSubmissionGroup(BaseSchema):
    """Cards one player has played. ``cards`` is empty when hidden from the viewer."""
    player_id: UUID
    card_count: int
    complete: bool
    cards: List[SnapshotSubmittedCard]


class SnapshotRound(BaseSchema):
    round_id: UUID
    created_seq: int
    status: str
    judge_player_id: UUID
    prompt_text: str
    pick: int
    submissions: List[SnapshotSubmissionGroup]
    submitted_count: int
    expected_count: int
    all_submitted: bool
    viewer_submitted: int


class SnapshotCompletedRound(BaseSchema):
    round_id: UUID
    created_seq: int
    judge_player_id: UUID
    prompt_text: str
    winner_player_id: Optional[UUID]
    winning_cards: List[str]
    completed_at: Optional[datetime]


class RoomSnapshotResponse(BaseSchema):
    """Full room state for a polling client; replaces any cached state."""
    room_id: UUID
    room_code: str
    status: str
    host_player_id: Optional[UUID]
    deck_id: UUID
    max_players: int
    is_public: bool
    match_number: int
    started_at: Optional[datetime]
    players: List[SnapshotPlayer]
    judge_player_id: Optional[UUID]
    viewer_is_judge: bool
    current_round: Optional[SnapshotRound]
    last_completed_round: Optional[SnapshotCompletedRound]
    hand: List[SnapshotCard]
    needs_recovery: bool
    poll_interval_seconds: int
