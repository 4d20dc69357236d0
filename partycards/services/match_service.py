"""Match controller: match start, the polling snapshot and stuck-state recovery."""
from datetime import datetime, UTC
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update
from typing import Dict, Optional
from uuid import UUID
import logging

from partycards.config import get_settings
from partycards.models.base import RoomStatus, RoundStatus
from partycards.models.deck import PromptCard, AnswerCard
from partycards.models.room import Room
from partycards.models.round import Round
from partycards.services.card_inventory_service import CardInventoryService
from partycards.services.roster_service import PlayerRosterService
from partycards.services.round_service import RoundService
from partycards.utils.exceptions import (
    EmptyDeckError,
    InsufficientCardsError,
    NotEnoughPlayersError,
    NotHostError,
    RoomNotFoundError,
)

logger = logging.getLogger(__name__)


class MatchService:
    """Service coordinating whole matches in a room."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()
        self.inventory = CardInventoryService(db)
        self.roster = PlayerRosterService(db)
        self.rounds = RoundService(db, inventory=self.inventory, roster=self.roster)

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

    async def _check_deck_capacity(self, deck_id: UUID, player_count: int) -> None:
        prompt_count = await self.db.scalar(
            select(func.count(PromptCard.card_id)).where(PromptCard.deck_id == deck_id)
        )
        if not prompt_count:
            raise EmptyDeckError(f"Deck {deck_id} has no prompt cards")

        answer_count = await self.db.scalar(
            select(func.count(AnswerCard.card_id)).where(AnswerCard.deck_id == deck_id)
        ) or 0
        required = player_count * self.settings.hand_size
        if answer_count < required:
            raise InsufficientCardsError(
                f"Deck has {answer_count} answer cards, need {required} "
                f"to deal {self.settings.hand_size} to {player_count} players"
            )

    async def start_match(
        self,
        room_id: UUID,
        requesting_player_id: Optional[UUID] = None,
    ) -> Round:
        """Start (or restart) a match in a room.

        Claims the start with a compare-and-swap on ``match_number`` so two
        clients pressing start together produce one match. In the same
        transaction it closes any leftover submitting round, resets scores,
        clears and re-deals hands. The first round is judged by the player
        with the lowest join order.

        Args:
            room_id: UUID of the room
            requesting_player_id: Player asking to start; must be the host
                when given

        Returns:
            Round: The first submitting round of the match

        Raises:
            RoomNotFoundError: If the room doesn't exist
            NotHostError: If the requester is not the host
            NotEnoughPlayersError: If fewer than ``min_players`` are seated
            InsufficientCardsError: If the deck cannot cover the initial deal
            EmptyDeckError: If the deck has no prompt cards
        """
        room = await self._get_room(room_id)

        if (
            requesting_player_id is not None
            and room.host_player_id is not None
            and room.host_player_id != requesting_player_id
        ):
            raise NotHostError("Only the host can start the match")

        players = await self.roster.ordered_players(room_id)
        if len(players) < self.settings.min_players:
            raise NotEnoughPlayersError(
                f"Need at least {self.settings.min_players} players to start, have {len(players)}"
            )

        deck_id = room.deck_id
        observed_match = room.match_number
        player_ids = [player.player_id for player in players]
        first_judge_id = player_ids[0]

        await self._check_deck_capacity(deck_id, len(player_ids))

        now = datetime.now(UTC)
        result = await self.db.execute(
            update(Room)
            .where(Room.room_id == room_id)
            .where(Room.match_number == observed_match)
            .values(
                status=RoomStatus.PLAYING.value,
                match_number=observed_match + 1,
                started_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            await self.db.rollback()
            logger.info(f"Match in room {room_id} was started concurrently, returning its round")
            active = await self.rounds.get_active_round(room_id)
            if active:
                return active
            return await self.ensure_active_round(room_id)

        try:
            closed = await self.db.execute(
                update(Round)
                .where(Round.room_id == room_id)
                .where(Round.status == RoundStatus.SUBMITTING.value)
                .values(status=RoundStatus.COMPLETED.value, completed_at=now)
                .execution_options(synchronize_session=False)
            )
            if closed.rowcount:
                logger.info(f"Closed {closed.rowcount} unfinished round(s) from the previous match in room {room_id}")

            await self.roster.reset_scores(room_id, commit=False)
            await self.inventory.clear_hands(room_id, commit=False)
            await self.inventory.deal_initial_hands(
                room_id,
                deck_id,
                player_ids,
                self.settings.hand_size,
                commit=False,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Started match {observed_match + 1} in room {room_id} with {len(player_ids)} players"
        )
        return await self.rounds.create_round(room_id, first_judge_id)

    async def ensure_active_round(self, room_id: UUID) -> Optional[Round]:
        """Repair a playing room that has no submitting round.

        This happens when ``advance`` failed after a winner was recorded. The
        next judge is re-derived from the most recent round of the match and
        ``advance`` re-run from scratch.

        Returns:
            Round: The submitting round, or None if the room isn't playing
        """
        room = await self._get_room(room_id)
        if room.status != RoomStatus.PLAYING.value:
            return None

        active = await self.rounds.get_active_round(room_id)
        if active:
            return active

        match_number = room.match_number
        latest = await self.rounds.get_latest_round(room_id, match_number=match_number)
        if latest:
            logger.warning(
                f"Room {room_id} is playing with no submitting round; "
                f"re-running advance from round {latest.round_id}"
            )
            return await self.rounds.advance(latest)

        players = await self.roster.ordered_players(room_id)
        if not players:
            raise NotEnoughPlayersError(f"Room {room_id} has no players left")

        logger.warning(f"Match {match_number} in room {room_id} has no rounds; creating the first one")
        return await self.rounds.create_round(room_id, players[0].player_id)

    async def snapshot(self, room_id: UUID, viewer_player_id: UUID) -> Dict:
        """Build the read model a polling client renders from.

        The judge highlight comes from the current (or latest) round, never
        from the advisory ``is_judge`` flag. Submission contents are shown to
        the judge and to their owner; everyone else sees counts only.

        Args:
            room_id: UUID of the room
            viewer_player_id: Player the snapshot is rendered for

        Returns:
            dict: Complete room state for the viewer

        Raises:
            RoomNotFoundError: If the room doesn't exist
        """
        room = await self._get_room(room_id)
        players = await self.roster.ordered_players(room_id)
        player_ids = {player.player_id for player in players}

        active = await self.rounds.get_active_round(room_id)
        latest = active or await self.rounds.get_latest_round(room_id, match_number=room.match_number)
        judge_id = latest.judge_player_id if latest else None

        roster = [
            {
                'player_id': player.player_id,
                'username': player.username,
                'join_order': player.join_order,
                'score': player.score,
                'is_judge': player.player_id == judge_id,
                'is_host': player.player_id == room.host_player_id,
            }
            for player in players
        ]

        hand = []
        if viewer_player_id in player_ids:
            hand_cards = await self.inventory.get_hand(room_id, viewer_player_id, self.settings.hand_size)
            hand = [{'card_id': hc.card_id, 'text': hc.card.text} for hc in hand_cards]

        current_round = None
        if active:
            current_round = await self._round_view(active, viewer_player_id, player_ids)

        last_completed = None
        completed = await self.rounds.get_latest_round(
            room_id,
            match_number=room.match_number,
            status=RoundStatus.COMPLETED,
        )
        if completed:
            last_completed = await self._completed_view(completed)

        return {
            'room_id': room.room_id,
            'room_code': room.room_code,
            'status': room.status,
            'host_player_id': room.host_player_id,
            'deck_id': room.deck_id,
            'max_players': room.max_players,
            'is_public': room.is_public,
            'match_number': room.match_number,
            'started_at': room.started_at,
            'players': roster,
            'judge_player_id': judge_id,
            'viewer_is_judge': judge_id is not None and judge_id == viewer_player_id,
            'current_round': current_round,
            'last_completed_round': last_completed,
            'hand': hand,
            'needs_recovery': room.status == RoomStatus.PLAYING.value and active is None,
            'poll_interval_seconds': self.settings.poll_interval_seconds,
        }

    async def _round_view(self, round_obj: Round, viewer_player_id: UUID, player_ids: set) -> Dict:
        submissions = await self.rounds.get_submissions(round_obj.round_id)
        pick = round_obj.prompt_card.pick
        viewer_is_judge = round_obj.judge_player_id == viewer_player_id

        grouped: Dict[UUID, list] = {}
        for submission in submissions:
            grouped.setdefault(submission.player_id, []).append(submission)

        entries = []
        for player_id, player_submissions in grouped.items():
            visible = viewer_is_judge or player_id == viewer_player_id
            entries.append({
                'player_id': player_id,
                'card_count': len(player_submissions),
                'complete': len(player_submissions) >= pick,
                'cards': [
                    {
                        'submission_id': s.submission_id,
                        'card_id': s.card_id,
                        'text': s.card.text,
                        'pick_slot': s.pick_slot,
                    }
                    for s in player_submissions
                ] if visible else [],
            })

        expected = [pid for pid in player_ids if pid != round_obj.judge_player_id]
        all_submitted = bool(expected) and all(
            len(grouped.get(pid, [])) >= pick for pid in expected
        )

        return {
            'round_id': round_obj.round_id,
            'created_seq': round_obj.created_seq,
            'status': round_obj.status,
            'judge_player_id': round_obj.judge_player_id,
            'prompt_text': round_obj.prompt_card.text,
            'pick': pick,
            'submissions': entries,
            'submitted_count': sum(1 for entry in entries if entry['complete']),
            'expected_count': len(expected),
            'all_submitted': all_submitted,
            'viewer_submitted': len(grouped.get(viewer_player_id, [])),
        }

    async def _completed_view(self, round_obj: Round) -> Dict:
        submissions = await self.rounds.get_submissions(round_obj.round_id)
        winning_cards = [
            s.card.text for s in submissions if s.player_id == round_obj.winner_player_id
        ]
        return {
            'round_id': round_obj.round_id,
            'created_seq': round_obj.created_seq,
            'judge_player_id': round_obj.judge_player_id,
            'prompt_text': round_obj.prompt_card.text,
            'winner_player_id': round_obj.winner_player_id,
            'winning_cards': winning_cards,
            'completed_at': round_obj.completed_at,
        }
