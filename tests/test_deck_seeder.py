"""
Tests for the deck CSV loader and database sync.

Tests cover:
- Parsing the bundled starter deck
- Blank pick defaults and duplicate rows
- Rejecting malformed rows
- Idempotent sync that only ever adds cards
"""

import pytest
from sqlalchemy import select, func

from partycards.config import DEFAULT_DECK_CSV
from partycards.models import AnswerCard, Deck, PromptCard
from partycards.services.deck_seeder import load_deck_from_csv, sync_deck_with_database


def _write_csv(tmp_path, rows):
    path = tmp_path / "deck.csv"
    path.write_text("type,text,pick\n" + "\n".join(rows) + "\n", encoding="utf-8")
    return path


class TestLoadDeckFromCsv:
    """Parsing deck CSV files."""

    def test_starter_deck_can_fill_a_full_room(self):
        deck = load_deck_from_csv(DEFAULT_DECK_CSV)

        assert len(deck.prompts) >= 20
        assert len(deck.answers) >= 10 * 10
        assert all(pick >= 1 for _, pick in deck.prompts)
        assert any(pick == 2 for _, pick in deck.prompts)

    def test_blank_pick_defaults_to_one_and_duplicates_are_skipped(self, tmp_path):
        path = _write_csv(tmp_path, [
            "prompt,Why am I sticky?,",
            "prompt,____ + ____ = ____.,3",
            "prompt,Why am I sticky?,1",
            "answer,A sad trombone.,",
            "answer,A sad trombone.,",
            "answer,,",
        ])

        deck = load_deck_from_csv(path)

        assert deck.prompts == [("Why am I sticky?", 1), ("____ + ____ = ____.", 3)]
        assert deck.answers == ["A sad trombone."]

    def test_unknown_card_type_is_rejected(self, tmp_path):
        path = _write_csv(tmp_path, ["question,What?,1"])

        with pytest.raises(ValueError, match="unknown card type"):
            load_deck_from_csv(path)

    def test_pick_below_one_is_rejected(self, tmp_path):
        path = _write_csv(tmp_path, ["prompt,Pick nothing.,0"])

        with pytest.raises(ValueError, match="pick must be at least 1"):
            load_deck_from_csv(path)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_deck_from_csv(tmp_path / "missing.csv")


class TestSyncDeckWithDatabase:
    """Keeping a named deck in step with its CSV."""

    @pytest.mark.asyncio
    async def test_sync_creates_deck(self, db_session, tmp_path):
        path = _write_csv(tmp_path, [
            "prompt,What's in the box?,1",
            "answer,A live goat.,",
            "answer,Regret.,",
        ])

        deck = await sync_deck_with_database(db_session, "Tiny", path)

        prompts = await db_session.scalar(
            select(func.count(PromptCard.card_id)).where(PromptCard.deck_id == deck.deck_id)
        )
        answers = await db_session.scalar(
            select(func.count(AnswerCard.card_id)).where(AnswerCard.deck_id == deck.deck_id)
        )
        assert (prompts, answers) == (1, 2)

    @pytest.mark.asyncio
    async def test_sync_is_idempotent_and_never_removes_cards(self, db_session, tmp_path):
        path = _write_csv(tmp_path, [
            "prompt,What's in the box?,1",
            "answer,A live goat.,",
        ])
        first = await sync_deck_with_database(db_session, "Growing", path)
        again = await sync_deck_with_database(db_session, "Growing", path)
        assert again.deck_id == first.deck_id

        # A trimmed CSV with one new card only adds
        path = _write_csv(tmp_path, ["answer,Regret.,"])
        await sync_deck_with_database(db_session, "Growing", path)

        decks = await db_session.scalar(select(func.count(Deck.deck_id)).where(Deck.name == "Growing"))
        result = await db_session.execute(
            select(AnswerCard.text).where(AnswerCard.deck_id == first.deck_id)
        )
        assert decks == 1
        assert sorted(result.scalars().all()) == ["A live goat.", "Regret."]
