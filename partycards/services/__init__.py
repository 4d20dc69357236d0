"""Business logic services."""
from partycards.services.card_inventory_service import CardInventoryService
from partycards.services.roster_service import PlayerRosterService
from partycards.services.round_service import RoundService, WinnerResolution
from partycards.services.match_service import MatchService
from partycards.services.room_service import RoomService

__all__ = [
    "CardInventoryService",
    "PlayerRosterService",
    "RoundService",
    "WinnerResolution",
    "MatchService",
    "RoomService",
]
