"""Sanity checks for the Alembic migrations.

The revisions in ``partycards/migrations/versions`` must form a single linear
upgrade path, and ``alembic upgrade head`` must build a schema that enforces
the one-submitting-round-per-room rule.
"""

from __future__ import annotations

from pathlib import Path
import re
import sqlite3

import pytest
from alembic import command
from alembic.config import Config as AlembicConfig


ROOT_DIR = Path(__file__).resolve().parents[1]
VERSIONS_DIR = ROOT_DIR / "partycards" / "migrations" / "versions"


def _parse_revisions() -> dict[str, str | None]:
    revision_pattern = re.compile(r"^revision:\s*.*?['\"]([^'\"]+)['\"]", re.MULTILINE)
    down_revision_pattern = re.compile(r"^down_revision:\s*.*?=\s*(.+)$", re.MULTILINE)

    revisions: dict[str, str | None] = {}
    for path in VERSIONS_DIR.glob("*.py"):
        text = path.read_text()

        revision_match = revision_pattern.search(text)
        if not revision_match:
            raise AssertionError(f"Missing revision identifier in {path.name}")

        down_revision = None
        down_match = down_revision_pattern.search(text)
        if down_match:
            string_match = re.search(r"['\"]([^'\"]*)['\"]", down_match.group(1))
            if string_match and string_match.group(1):
                down_revision = string_match.group(1)

        revisions[revision_match.group(1)] = down_revision

    return revisions


def test_migrations_have_single_head() -> None:
    revisions = _parse_revisions()
    assert revisions, "No migration files found"

    referenced = {down for down in revisions.values() if down}
    missing = referenced - set(revisions)
    assert not missing, f"Missing migration files referenced by down_revision: {missing}"

    heads = sorted(set(revisions) - referenced)
    assert len(heads) == 1, f"Multiple migration heads detected: {heads}"

    seen: set[str] = set()
    current: str | None = heads[0]
    while current and current not in seen:
        seen.add(current)
        current = revisions[current]

    unreachable = set(revisions) - seen
    assert not unreachable, f"Unreachable migrations: {sorted(unreachable)}"


@pytest.fixture
def migrated_db(tmp_path):
    db_path = tmp_path / "migrated.db"
    config = AlembicConfig(str(ROOT_DIR / "alembic.ini"))
    config.attributes["configure_logger"] = False
    config.set_main_option("script_location", str(ROOT_DIR / "partycards" / "migrations"))
    config.set_main_option("sqlalchemy.url", f"sqlite+aiosqlite:///{db_path}")

    command.upgrade(config, "head")
    yield db_path, config


def test_upgrade_creates_tables(migrated_db) -> None:
    db_path, _ = migrated_db

    with sqlite3.connect(db_path) as conn:
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}

    assert {
        "decks",
        "prompt_cards",
        "answer_cards",
        "rooms",
        "room_players",
        "rounds",
        "submissions",
        "hand_cards",
    } <= tables


def test_upgraded_schema_allows_one_submitting_round(migrated_db) -> None:
    db_path, _ = migrated_db

    with sqlite3.connect(db_path) as conn:
        conn.execute("INSERT INTO decks (deck_id, name) VALUES ('d1', 'Deck')")
        conn.execute("INSERT INTO prompt_cards (card_id, deck_id, text, pick) VALUES ('p1', 'd1', 'Prompt', 1)")
        conn.execute("INSERT INTO rooms (room_id, room_code, deck_id) VALUES ('r1', 'ABCD2345', 'd1')")
        conn.execute(
            "INSERT INTO rounds (round_id, room_id, match_number, created_seq, prompt_card_id, judge_player_id) "
            "VALUES ('a', 'r1', 1, 1, 'p1', 'j1')"
        )

        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO rounds (round_id, room_id, match_number, created_seq, prompt_card_id, judge_player_id) "
                "VALUES ('b', 'r1', 1, 2, 'p1', 'j2')"
            )

        # A completed round does not count against the limit
        conn.execute(
            "INSERT INTO rounds (round_id, room_id, match_number, created_seq, prompt_card_id, judge_player_id, status) "
            "VALUES ('c', 'r1', 1, 3, 'p1', 'j2', 'completed')"
        )


def test_downgrade_drops_tables(migrated_db) -> None:
    db_path, config = migrated_db

    command.downgrade(config, "base")

    with sqlite3.connect(db_path) as conn:
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert "rounds" not in tables
