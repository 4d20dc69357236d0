"""API routers."""
from partycards.routers import health, rooms

__all__ = ["health", "rooms"]
