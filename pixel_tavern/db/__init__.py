"""
Database module - models, persistence and seed data.

Uses SQLModel with SQLite (or any SQLAlchemy URL).
"""

from pixel_tavern.db import models, seed, sqlite

__all__ = ["models", "seed", "sqlite"]
