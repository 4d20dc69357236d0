"""Load card decks from CSV and keep them in sync with the database."""
from partycards.config import get_settings
from partycards.database import AsyncSessionLocal
from partycards.models.base import CardType
from partycards.models.deck import Deck, PromptCard, AnswerCard
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from dataclasses import dataclass, field
from pathlib import Path
import logging
import csv

logger = logging.getLogger(__name__)


@dataclass
class DeckDefinition:
    """Cards parsed from a deck CSV, in file order."""
    prompts: list[tuple[str, int]] = field(default_factory=list)
    answers: list[str] = field(default_factory=list)


def load_deck_from_csv(csv_path: str | Path) -> DeckDefinition:
    """Load a deck from a CSV file with ``type,text,pick`` columns.

    ``type`` is ``prompt`` or ``answer``. ``pick`` only applies to prompts and
    defaults to 1 when blank. Duplicate rows are skipped.
    """
    csv_path = Path(csv_path)
    deck = DeckDefinition()
    seen_prompts = set()
    seen_answers = set()

    try:
        with open(csv_path, 'r', encoding='utf-8') as file:
            reader = csv.DictReader(file)
            for line_number, row in enumerate(reader, start=2):
                card_type = (row.get('type') or '').strip().lower()
                text = (row.get('text') or '').strip()
                if not text:
                    continue

                if card_type == CardType.PROMPT.value:
                    pick_raw = (row.get('pick') or '').strip()
                    pick = int(pick_raw) if pick_raw else 1
                    if pick < 1:
                        raise ValueError(f"{csv_path}:{line_number}: pick must be at least 1")
                    if text not in seen_prompts:
                        seen_prompts.add(text)
                        deck.prompts.append((text, pick))
                elif card_type == CardType.ANSWER.value:
                    if text not in seen_answers:
                        seen_answers.add(text)
                        deck.answers.append(text)
                else:
                    raise ValueError(f"{csv_path}:{line_number}: unknown card type '{card_type}'")

        logger.info(
            f"Loaded {len(deck.prompts)} prompt cards and {len(deck.answers)} answer cards from {csv_path}"
        )
        return deck
    except FileNotFoundError:
        logger.error(f"Deck CSV file not found at {csv_path}")
        raise
    except Exception as e:
        logger.error(f"Error reading deck CSV: {e}")
        raise


async def sync_deck_with_database(db: AsyncSession, name: str, csv_path: str | Path) -> Deck:
    """Create the named deck or add the CSV's missing cards to it.

    Existing cards are never removed: rooms may be mid-match with them in
    hand. Safe to run multiple times.

    Returns:
        Deck: The synced deck
    """
    definition = load_deck_from_csv(csv_path)

    result = await db.execute(select(Deck).where(Deck.name == name))
    deck = result.scalar_one_or_none()
    if not deck:
        deck = Deck(name=name)
        db.add(deck)
        await db.flush()
        logger.info(f"Creating deck '{name}'")

    result = await db.execute(select(PromptCard.text).where(PromptCard.deck_id == deck.deck_id))
    existing_prompts = set(result.scalars().all())
    result = await db.execute(select(AnswerCard.text).where(AnswerCard.deck_id == deck.deck_id))
    existing_answers = set(result.scalars().all())

    added_prompts = 0
    for text, pick in definition.prompts:
        if text not in existing_prompts:
            db.add(PromptCard(deck_id=deck.deck_id, text=text, pick=pick))
            added_prompts += 1

    added_answers = 0
    for text in definition.answers:
        if text not in existing_answers:
            db.add(AnswerCard(deck_id=deck.deck_id, text=text))
            added_answers += 1

    await db.commit()

    if added_prompts or added_answers:
        logger.info(
            f"Deck sync complete for '{name}': {added_prompts} prompt cards and "
            f"{added_answers} answer cards added"
        )
    else:
        logger.info(f"Deck '{name}' already in sync")

    prompt_total = await db.scalar(
        select(func.count(PromptCard.card_id)).where(PromptCard.deck_id == deck.deck_id)
    )
    answer_total = await db.scalar(
        select(func.count(AnswerCard.card_id)).where(AnswerCard.deck_id == deck.deck_id)
    )
    logger.info(f"Deck '{name}' holds {prompt_total} prompt cards and {answer_total} answer cards")
    return deck


async def seed_default_deck() -> None:
    """Sync the configured starter deck. Runs on application startup."""
    settings = get_settings()
    try:
        async with AsyncSessionLocal() as db:
            await sync_deck_with_database(db, settings.default_deck_name, settings.default_deck_csv)
    except Exception as e:
        logger.error(f"Failed to seed default deck: {e}")
        raise
