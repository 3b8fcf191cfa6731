"""REST routers mounted by pixel_tavern.main."""
from pixel_tavern.routes import auth, inventory

__all__ = ["auth", "inventory"]
