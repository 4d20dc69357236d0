"""Round state machine: create, submit, resolve, advance.

Every client runs this same code against the shared store. Safety comes from
store constraints and conditional writes rather than read-then-write checks:

- one ``submitting`` round per room (partial unique index) with a re-fetch
  of the winning round when an insert is rejected;
- winner resolution as a compare-and-swap on ``status = 'submitting'``, where
  only the caller whose UPDATE matched a row scores and advances;
- unique pick slots and a conditional hand delete against double submission;
- a conditional write on the round row at the start of every submission,
  so nothing lands in a round that has already completed.
"""
from dataclasses import dataclass
from datetime import datetime, UTC
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import List, Optional, Sequence
from uuid import UUID
import logging

from partycards.config import get_settings
from partycards.models.base import RoundStatus
from partycards.models.room import Room
from partycards.models.round import Round
from partycards.models.submission import Submission
from partycards.services.card_inventory_service import CardInventoryService
from partycards.services.roster_service import PlayerRosterService
from partycards.utils.exceptions import (
    AlreadySubmittedError,
    CardNotInHandError,
    InvalidSelectionError,
    JudgeNotFoundError,
    NotEnoughPlayersError,
    NotInRoomError,
    NotJudgeError,
    NotYourTurnError,
    PartyCardsError,
    RoomNotFoundError,
    RoundNotActiveError,
    RoundNotFoundError,
    SubmissionNotFoundError,
)

logger = logging.getLogger(__name__)

CREATE_ROUND_MAX_ATTEMPTS = 3


@dataclass
class WinnerResolution:
    """Outcome of a resolve_winner call.

    ``resolved`` is True only for the caller whose compare-and-swap completed
    the round. A False outcome is a benign race loss, not an error.
    """
    resolved: bool
    round: Round
    winner_player_id: Optional[UUID]
    next_round: Optional[Round] = None


class RoundService:
    """Service for the per-room round lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        inventory: Optional[CardInventoryService] = None,
        roster: Optional[PlayerRosterService] = None,
    ):
        self.db = db
        self.settings = get_settings()
        self.inventory = inventory or CardInventoryService(db)
        self.roster = roster or PlayerRosterService(db)

    async def _get_room(self, room_id: UUID) -> Room:
        result = await self.db.execute(
            select(Room)
            .where(Room.room_id == room_id)
            .execution_options(populate_existing=True)
        )
        room = result.scalar_one_or_none()
        if not room:
            raise RoomNotFoundError(f"Room {room_id} not found")
        return room

    async def get_round(self, round_id: UUID) -> Optional[Round]:
        """Get a round by ID, always reading the stored status."""
        result = await self.db.execute(
            select(Round)
            .where(Round.round_id == round_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_active_round(self, room_id: UUID) -> Optional[Round]:
        """Get the room's submitting round, if any."""
        result = await self.db.execute(
            select(Round)
            .where(Round.room_id == room_id)
            .where(Round.status == RoundStatus.SUBMITTING.value)
            .order_by(Round.created_seq.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_latest_round(
        self,
        room_id: UUID,
        match_number: Optional[int] = None,
        status: Optional[RoundStatus] = None,
    ) -> Optional[Round]:
        """Get the most recent round by ``created_seq``.

        The judge of this round is the judge of record for the room.
        """
        stmt = select(Round).where(Round.room_id == room_id)
        if match_number is not None:
            stmt = stmt.where(Round.match_number == match_number)
        if status is not None:
            stmt = stmt.where(Round.status == status.value)

        result = await self.db.execute(
            stmt.order_by(Round.created_seq.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_submissions(self, round_id: UUID) -> List[Submission]:
        result = await self.db.execute(
            select(Submission)
            .where(Submission.round_id == round_id)
            .order_by(Submission.player_id, Submission.pick_slot)
        )
        return list(result.scalars().all())

    async def _submission_count(self, round_id: UUID, player_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Submission.submission_id))
            .where(Submission.round_id == round_id)
            .where(Submission.player_id == player_id)
        )
        return result.scalar() or 0

    async def _next_created_seq(self, room_id: UUID) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.max(Round.created_seq), 0))
            .where(Round.room_id == room_id)
        )
        return (result.scalar() or 0) + 1

    async def create_round(self, room_id: UUID, judge_player_id: UUID) -> Round:
        """Open a submitting round with the given judge.

        If the room already has a submitting round, that round is returned
        unchanged: another client got there first and the intended end state
        already holds.

        Args:
            room_id: UUID of the room
            judge_player_id: Player who judges the new round

        Returns:
            Round: The new round, or the pre-existing submitting round

        Raises:
            RoomNotFoundError: If the room doesn't exist
            EmptyDeckError: If the room's deck has no prompt cards
            PartyCardsError: If every insert attempt was rejected and no
                submitting round turned up
        """
        for attempt in range(CREATE_ROUND_MAX_ATTEMPTS):
            existing = await self.get_active_round(room_id)
            if existing:
                logger.info(
                    f"Room {room_id} already has submitting round {existing.round_id} "
                    f"(judge {existing.judge_player_id}), not creating another"
                )
                return existing

            room = await self._get_room(room_id)
            prompt = await self.inventory.draw_prompt(room_id, room.deck_id)
            created_seq = await self._next_created_seq(room_id)

            round_obj = Round(
                room_id=room_id,
                match_number=room.match_number,
                created_seq=created_seq,
                prompt_card_id=prompt.card_id,
                prompt_card=prompt,
                judge_player_id=judge_player_id,
                status=RoundStatus.SUBMITTING.value,
                created_at=datetime.now(UTC),
            )
            self.db.add(round_obj)

            try:
                await self.db.commit()
            except IntegrityError:
                # Rejected by the one-submitting-round index or a created_seq clash
                await self.db.rollback()
                logger.info(
                    f"Round insert for room {room_id} rejected by store constraint "
                    f"(attempt {attempt + 1}/{CREATE_ROUND_MAX_ATTEMPTS}); re-fetching"
                )
                continue

            new_round_id = round_obj.round_id
            logger.info(
                f"Created round {new_round_id} (seq {created_seq}) in room {room_id} "
                f"with judge {judge_player_id}"
            )

            try:
                await self.roster.set_advisory_judge_flag(room_id, judge_player_id)
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.warning(f"Could not refresh judge flag in room {room_id}, continuing: {e}")
                # Rollback expired the new round; reload it
                return await self.get_round(new_round_id)

            return round_obj

        existing = await self.get_active_round(room_id)
        if existing:
            return existing
        logger.error(f"Gave up creating a round in room {room_id} after {CREATE_ROUND_MAX_ATTEMPTS} attempts")
        raise PartyCardsError(f"Could not open a round in room {room_id}, please try again")

    async def _load_submittable_round(self, round_id: UUID, player_id: UUID) -> Round:
        round_obj = await self.get_round(round_id)
        if not round_obj:
            raise RoundNotFoundError(f"Round {round_id} not found")

        if not round_obj.is_submitting:
            raise RoundNotActiveError(f"Round {round_id} is no longer accepting submissions")

        if round_obj.judge_player_id == player_id:
            raise NotYourTurnError("The judge cannot submit cards this round")

        if not await self.roster.get_player(round_obj.room_id, player_id):
            raise NotInRoomError(f"Player {player_id} is not in room {round_obj.room_id}")

        return round_obj

    async def _place_cards(
        self,
        round_obj: Round,
        player_id: UUID,
        card_ids: Sequence[UUID],
        first_slot: int,
    ) -> List[Submission]:
        """Insert submissions and consume the cards in one transaction.

        The transaction opens with a conditional write on the round row, so a
        winner committed after the caller's status read makes this fail with
        ``RoundNotActiveError`` instead of landing in a completed round.
        """
        round_id = round_obj.round_id
        room_id = round_obj.room_id

        submissions = []
        try:
            await self._hold_submitting_round(round_id)

            for card_id in card_ids:
                if not await self.inventory.holds_card(room_id, player_id, card_id):
                    raise CardNotInHandError(f"Card {card_id} is not in your hand")

            for offset, card_id in enumerate(card_ids):
                submission = Submission(
                    round_id=round_id,
                    player_id=player_id,
                    card_id=card_id,
                    pick_slot=first_slot + offset,
                    created_at=datetime.now(UTC),
                )
                self.db.add(submission)
                submissions.append(submission)

            await self.db.flush()
            for card_id in card_ids:
                await self.inventory.consume(room_id, player_id, card_id, commit=False)
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise AlreadySubmittedError("Those cards were already submitted for this round") from exc
        except (CardNotInHandError, RoundNotActiveError):
            await self.db.rollback()
            raise

        for submission in submissions:
            await self.db.refresh(submission, attribute_names=["card"])

        logger.info(
            f"Player {player_id} submitted {len(submissions)} card(s) to round {round_id}"
        )
        return submissions

    async def _hold_submitting_round(self, round_id: UUID) -> None:
        """No-op update that matches only while the round is submitting.

        It takes the row's write lock for the rest of the transaction, so a
        concurrent winner selection either commits first (and this matches
        nothing) or waits for the submission to commit.

        Raises:
            RoundNotActiveError: If the round is no longer submitting
        """
        result = await self.db.execute(
            update(Round)
            .where(Round.round_id == round_id)
            .where(Round.status == RoundStatus.SUBMITTING.value)
            .values(status=Round.status)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.info(f"Round {round_id} completed before the submission could be recorded")
            raise RoundNotActiveError(f"Round {round_id} is no longer accepting submissions")

    async def submit(self, round_id: UUID, player_id: UUID, card_id: UUID) -> Submission:
        """Play one card into the next free pick slot of a round.

        Args:
            round_id: UUID of the submitting round
            player_id: UUID of the submitting player
            card_id: Answer card from the player's hand

        Returns:
            Submission: Created submission

        Raises:
            RoundNotFoundError: If the round doesn't exist
            RoundNotActiveError: If the round is already completed
            NotYourTurnError: If the player is the round's judge
            NotInRoomError: If the player is not on the roster
            AlreadySubmittedError: If every pick slot is already filled
            CardNotInHandError: If the card is not in the player's hand
        """
        round_obj = await self._load_submittable_round(round_id, player_id)

        pick = round_obj.prompt_card.pick
        submitted = await self._submission_count(round_id, player_id)
        if submitted >= pick:
            raise AlreadySubmittedError(
                f"Already submitted {submitted} of {pick} card(s) for this round"
            )

        submissions = await self._place_cards(round_obj, player_id, [card_id], first_slot=submitted)
        return submissions[0]

    async def submit_cards(
        self,
        round_id: UUID,
        player_id: UUID,
        card_ids: Sequence[UUID],
    ) -> List[Submission]:
        """Play an ordered selection filling every remaining pick slot at once.

        Raises:
            InvalidSelectionError: If the selection size does not match the
                remaining picks, or repeats a card
            plus everything ``submit`` raises
        """
        round_obj = await self._load_submittable_round(round_id, player_id)

        pick = round_obj.prompt_card.pick
        submitted = await self._submission_count(round_id, player_id)
        if submitted >= pick:
            raise AlreadySubmittedError(
                f"Already submitted {submitted} of {pick} card(s) for this round"
            )

        remaining = pick - submitted
        if len(card_ids) != remaining:
            raise InvalidSelectionError(
                f"Select {remaining} card{'s' if remaining != 1 else ''} to submit"
            )
        if len(set(card_ids)) != len(card_ids):
            raise InvalidSelectionError("The same card cannot be played twice")

        return await self._place_cards(round_obj, player_id, list(card_ids), first_slot=submitted)

    async def resolve_winner(
        self,
        round_id: UUID,
        submission_id: UUID,
        requesting_player_id: UUID,
    ) -> WinnerResolution:
        """Judge picks the winning submission.

        Completion is a compare-and-swap on ``status = 'submitting'``. Only the
        caller whose update matched a row awards the point (in the same
        transaction) and then advances the match; everyone else gets a
        no-op resolution.

        Raises:
            RoundNotFoundError: If the round doesn't exist
            NotJudgeError: If the requester is not the round's judge
            SubmissionNotFoundError: If the submission is not in this round, or
                its author has left the room
        """
        round_obj = await self.get_round(round_id)
        if not round_obj:
            raise RoundNotFoundError(f"Round {round_id} not found")

        if round_obj.judge_player_id != requesting_player_id:
            raise NotJudgeError("Only the judge can select a winner")

        if not round_obj.is_submitting:
            logger.info(f"Round {round_id} already completed by another client, skipping")
            return await self._race_lost(round_obj)

        result = await self.db.execute(
            select(Submission)
            .where(Submission.submission_id == submission_id)
            .where(Submission.round_id == round_id)
        )
        submission = result.scalar_one_or_none()
        if not submission:
            raise SubmissionNotFoundError(f"Submission {submission_id} not found in round {round_id}")

        winner_id = submission.player_id
        room_id = round_obj.room_id
        cas_result = await self.db.execute(
            update(Round)
            .where(Round.round_id == round_id)
            .where(Round.status == RoundStatus.SUBMITTING.value)
            .values(
                status=RoundStatus.COMPLETED.value,
                winner_player_id=winner_id,
                completed_at=datetime.now(UTC),
            )
            .execution_options(synchronize_session=False)
        )

        if cas_result.rowcount == 0:
            await self.db.rollback()
            logger.info(f"Round {round_id} was completed concurrently, not awarding or advancing")
            round_obj = await self.get_round(round_id)
            return await self._race_lost(round_obj)

        if not await self.roster.award_point(room_id, winner_id, commit=False):
            # Author left the room; undo the completion so the judge can pick again
            await self.db.rollback()
            logger.info(f"Player {winner_id} left room {room_id}, round {round_id} stays open")
            raise SubmissionNotFoundError(
                f"Submission {submission_id} belongs to a player who has left the room"
            )
        await self.db.commit()

        round_obj = await self.get_round(round_id)
        logger.info(f"Round {round_id} won by player {winner_id}; this client advances the match")

        next_round = await self.advance(round_obj)
        round_obj = await self.get_round(round_id)
        return WinnerResolution(
            resolved=True,
            round=round_obj,
            winner_player_id=winner_id,
            next_round=next_round,
        )

    async def _race_lost(self, round_obj: Round) -> WinnerResolution:
        return WinnerResolution(
            resolved=False,
            round=round_obj,
            winner_player_id=round_obj.winner_player_id,
            next_round=await self.get_active_round(round_obj.room_id),
        )

    async def advance(self, completed_round: Round) -> Round:
        """Replenish hands, rotate the judge and open the next round.

        Safe to run again from scratch: replenishing a full hand is a no-op
        and ``create_round`` returns an existing submitting round.

        Raises:
            NotEnoughPlayersError: If the roster is empty
            EmptyDeckError: If the deck has no prompt cards
        """
        # Replenish may roll back and expire ORM state, so copy what we need first
        room_id = completed_round.room_id
        previous_judge_id = completed_round.judge_player_id
        room = await self._get_room(room_id)
        deck_id = room.deck_id
        players = await self.roster.ordered_players(room_id)
        if not players:
            raise NotEnoughPlayersError(f"Room {room_id} has no players left")

        player_ids = [player.player_id for player in players]
        for player_id in player_ids:
            await self.inventory.replenish(room_id, deck_id, player_id, self.settings.hand_size)

        try:
            next_judge = await self.roster.next_judge(room_id, previous_judge_id)
            next_judge_id = next_judge.player_id
        except JudgeNotFoundError as e:
            logger.warning(f"{e}; falling back to first player in join order")
            next_judge_id = player_ids[0]

        return await self.create_round(room_id, next_judge_id)
