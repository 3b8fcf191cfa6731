"""
Database engine, schema initialization and health checks.
"""
from pathlib import Path
from typing import Any, Optional
from sqlmodel import SQLModel, create_engine, Session, select, func

from pixel_tavern.config import get_settings
from pixel_tavern.db.models import (
    User,
    Room,
    Message,
    Bartender,
    MenuItem,
    BartenderMood,
    BartenderMemory,
    Item,
    UserInventory,
)


_engine: Optional[Any] = None


def _ensure_sqlite_dir(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    if not database_url.startswith("sqlite:///"):
        return
    raw_path = database_url.replace("sqlite:///", "", 1)
    if not raw_path or raw_path == ":memory:":
        return
    Path(raw_path).parent.mkdir(parents=True, exist_ok=True)


def get_engine():
    """Get or create the shared SQLModel engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _ensure_sqlite_dir(settings.DATABASE_URL)

        is_sqlite = settings.DATABASE_URL.startswith("sqlite")
        _engine = create_engine(
            settings.DATABASE_URL,
            connect_args={"check_same_thread": False, "timeout": 30.0} if is_sqlite else {},
            echo=False,
            pool_pre_ping=True,
        )
    return _engine


def init_db(drop_all: bool = False) -> None:
    """
    Initialize database schema.

    Args:
        drop_all: If True, drop all tables before creating (DESTRUCTIVE!)

    Usage:
        # First time setup
        from pixel_tavern.db.sqlite import init_db
        init_db()

        # Reset database (lose all data!)
        init_db(drop_all=True)
    """
    engine = get_engine()

    if drop_all:
        print("⚠️  Dropping all tables...")
        SQLModel.metadata.drop_all(engine)

    SQLModel.metadata.create_all(engine)
    print("✓ Database initialized")


def _count(session: Session, model) -> int:
    return session.exec(select(func.count()).select_from(model)).one()


def check_db_health() -> dict[str, Any]:
    """
    Check database connectivity and get basic stats.

    Returns:
        Dict with status and table counts
    """
    try:
        with Session(get_engine()) as session:
            online = session.exec(
                select(func.count()).select_from(User).where(User.online == True)  # noqa: E712
            ).one()

            return {
                "status": "healthy",
                "counts": {
                    "users": _count(session, User),
                    "users_online": online,
                    "rooms": _count(session, Room),
                    "messages": _count(session, Message),
                    "bartenders": _count(session, Bartender),
                    "menu_items": _count(session, MenuItem),
                    "moods": _count(session, BartenderMood),
                    "memories": _count(session, BartenderMemory),
                    "items": _count(session, Item),
                    "inventory_entries": _count(session, UserInventory),
                }
            }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }
