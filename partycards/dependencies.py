"""FastAPI dependencies."""
import logging

from fastapi import Header, HTTPException
from uuid import UUID

logger = logging.getLogger(__name__)


def _mask_identifier(identifier: str) -> str:
    """Mask a player identifier for logging."""
    if not identifier:
        return "<missing>"
    if len(identifier) <= 8:
        return f"{identifier[:2]}...{identifier[-2:]}"
    return f"{identifier[:4]}...{identifier[-4:]}"


async def get_current_player_id(
    x_player_id: str | None = Header(default=None, alias="X-Player-Id"),
) -> UUID:
    """Resolve the acting player from the ``X-Player-Id`` header.

    The identifier is opaque to the game; it only has to be a stable UUID.
    """
    if not x_player_id:
        raise HTTPException(status_code=401, detail="Missing X-Player-Id header")

    try:
        return UUID(x_player_id)
    except ValueError:
        logger.warning(f"Rejected malformed player id {_mask_identifier(x_player_id)}")
        raise HTTPException(status_code=400, detail="X-Player-Id must be a UUID")
