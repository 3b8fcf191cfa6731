"""
Services module - tavern business logic.

Each service opens its own short-lived database session per call.
"""

from pixel_tavern.services import accounts, bartenders, dialogue, inventory, rooms, sentiment

__all__ = ["accounts", "bartenders", "dialogue", "inventory", "rooms", "sentiment"]
