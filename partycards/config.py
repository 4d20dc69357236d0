"""Application configuration management."""
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from pathlib import Path
from sqlalchemy.engine.url import make_url, URL
from typing import Optional
import logging

SQLITE_LOCAL_URL = "sqlite+aiosqlite:///./partycards.db"
DEFAULT_DECK_CSV = str(Path(__file__).parent / "data" / "starter_deck.csv")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = SQLITE_LOCAL_URL
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Application
    environment: str = "development"
    cors_origins: list[str] = ["*"]

    # Game Constants
    hand_size: int = 10  # Target steady-state white cards per player
    min_players: int = 3  # Minimum roster size to start a match
    max_players: int = 10  # Default room capacity
    room_code_length: int = 8

    # Polling
    poll_interval_seconds: int = 2  # Advertised to clients alongside each snapshot

    # Decks
    default_deck_name: str = "Starter Deck"
    default_deck_csv: str = DEFAULT_DECK_CSV
    seed_default_deck: bool = True  # Sync starter deck on application startup

    # Maintenance
    recovery_enabled: bool = False
    recovery_interval_seconds: int = 30  # Sweep for playing rooms with no submitting round

    @model_validator(mode="after")
    def validate_all_config(self):
        """Validate game constants and normalize Postgres URLs."""
        logger = logging.getLogger(__name__)

        if self.hand_size < 1:
            raise ValueError("hand_size must be at least 1")

        if self.min_players < 2:
            raise ValueError("min_players must be at least 2 so the judge can rotate")

        if self.max_players < self.min_players:
            raise ValueError("max_players must not be lower than min_players")

        if self.poll_interval_seconds < 1:
            raise ValueError("poll_interval_seconds must be at least 1")

        # Database URL normalization
        url = self.database_url
        if not url:
            logger.warning("Empty DATABASE_URL, using SQLite fallback")
            self.database_url = SQLITE_LOCAL_URL
            return self

        parsed: Optional[URL] = None
        try:
            parsed = make_url(url)
        except Exception as e:
            logger.error(f"Failed to parse DATABASE_URL: {e}")
            logging.warning(f"Invalid DATABASE_URL '{url}'; falling back to default sqlite database.")
            self.database_url = SQLITE_LOCAL_URL
            return self

        drivername = parsed.drivername
        if drivername.startswith("postgres") and "+asyncpg" not in drivername:
            old_drivername = drivername
            parsed = parsed.set(drivername="postgresql+asyncpg")
            logger.info(f"Driver normalized: {old_drivername} -> {parsed.drivername}")

        # Use render_as_string to properly re-encode special characters in password
        self.database_url = parsed.render_as_string(hide_password=False)
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
