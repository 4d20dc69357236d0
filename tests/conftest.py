"""Pytest configuration and fixtures."""
import os
import uuid
from dataclasses import dataclass, field

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Ensure the application never touches a developer database during tests
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_partycards.db"
os.environ["SEED_DEFAULT_DECK"] = "false"
os.environ["RECOVERY_ENABLED"] = "false"

from partycards.config import get_settings
from partycards.database import Base
from partycards.models import Deck, PromptCard, AnswerCard

settings = get_settings()


@dataclass
class SeatedRoom:
    """A room plus its players in join order."""
    room_id: uuid.UUID
    deck_id: uuid.UUID
    player_ids: list[uuid.UUID] = field(default_factory=list)

    @property
    def host_id(self) -> uuid.UUID:
        return self.player_ids[0]


@pytest.fixture
async def test_engine(tmp_path):
    """Fresh SQLite file database per test, schema built from the models."""
    db_path = tmp_path / "partycards_test.db"
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        echo=False,
        # Concurrent sessions wait for the write lock instead of failing
        connect_args={"timeout": 30},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory for tests that need several independent clients."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()
        await session.close()


@pytest.fixture
async def test_app(session_factory):
    """Create test app with database override."""
    from partycards.main import app
    from partycards.database import get_db

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def deck_factory(db_session):
    """Factory for decks with generated prompt and answer cards."""

    async def _create_deck(
        prompt_count: int = 5,
        answer_count: int = 60,
        pick: int = 1,
        name: str | None = None,
    ) -> Deck:
        unique_id = str(uuid.uuid4())[:8]
        deck = Deck(name=name or f"deck-{unique_id}")
        db_session.add(deck)
        await db_session.flush()

        db_session.add_all(
            PromptCard(deck_id=deck.deck_id, text=f"Prompt {i} ____ ({unique_id})", pick=pick)
            for i in range(prompt_count)
        )
        db_session.add_all(
            AnswerCard(deck_id=deck.deck_id, text=f"Answer {i} ({unique_id})")
            for i in range(answer_count)
        )
        await db_session.commit()
        return deck

    return _create_deck


@pytest.fixture
async def room_factory(db_session, deck_factory):
    """Factory for rooms with players seated in join order (host first)."""
    from partycards.services import RoomService

    async def _create_room(
        player_count: int = 3,
        deck: Deck | None = None,
        answer_count: int | None = None,
        pick: int = 1,
        max_players: int | None = None,
    ) -> SeatedRoom:
        if deck is None:
            if answer_count is None:
                answer_count = max(player_count, 3) * settings.hand_size + 40
            deck = await deck_factory(answer_count=answer_count, pick=pick)

        room_service = RoomService(db_session)
        player_ids = [uuid.uuid4() for _ in range(player_count)]

        room = await room_service.create_room(
            host_player_id=player_ids[0],
            username="player0",
            deck_id=deck.deck_id,
            max_players=max_players,
        )
        for index, player_id in enumerate(player_ids[1:], start=1):
            await room_service.join_room(room.room_id, player_id, f"player{index}")

        return SeatedRoom(room_id=room.room_id, deck_id=deck.deck_id, player_ids=player_ids)

    return _create_room
