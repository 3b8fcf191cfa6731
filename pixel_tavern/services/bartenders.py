"""
Bartender service: the NPCs, their menu, and what they feel about and
remember of each patron.
"""
from typing import Optional, Any
from datetime import datetime, timezone

from sqlmodel import select, func

from pixel_tavern.config import get_settings
from pixel_tavern.db.models import Bartender, MenuItem, BartenderMood, BartenderMemory, utc_now
from pixel_tavern.deps import get_session_context
from pixel_tavern.errors import NotFoundError
from pixel_tavern.protocol import MemoryType
from pixel_tavern.utils.json_helpers import (
    safe_json_parse,
    safe_json_stringify,
    validate_memory_entries,
)


DEFAULT_MOOD = 50
MIN_MOOD = 0
MAX_MOOD = 100

NO_MEMORIES_SUMMARY = "No previous interactions recorded."


def clamp_mood(value: int) -> int:
    return max(MIN_MOOD, min(MAX_MOOD, value))


# === Bartenders ===

def get_bartenders() -> list[Bartender]:
    with get_session_context() as session:
        return list(session.exec(select(Bartender).order_by(Bartender.id)).all())


def get_bartender(bartender_id: int) -> Optional[Bartender]:
    with get_session_context() as session:
        return session.get(Bartender, bartender_id)


def get_bartender_by_name(name: str) -> Optional[Bartender]:
    with get_session_context() as session:
        statement = select(Bartender).where(func.lower(Bartender.name) == name.strip().lower())
        return session.exec(statement).first()


def create_bartender(name: str, sprite: str, avatar: str, personality: str) -> Bartender:
    with get_session_context() as session:
        bartender = Bartender(name=name, sprite=sprite, avatar=avatar, personality=personality)
        session.add(bartender)
        session.commit()
        session.refresh(bartender)
        return bartender


def update_bartender_level(bartender_id: int, level: int) -> Bartender:
    """
    Raises:
        NotFoundError: unknown bartender
    """
    with get_session_context() as session:
        bartender = session.get(Bartender, bartender_id)
        if bartender is None:
            raise NotFoundError("Bartender not found")
        bartender.level = level
        session.add(bartender)
        session.commit()
        session.refresh(bartender)
        return bartender


# === Menu ===

def get_menu_items(category: Optional[str] = None) -> list[MenuItem]:
    with get_session_context() as session:
        statement = select(MenuItem).order_by(MenuItem.id)
        if category:
            statement = statement.where(MenuItem.category == category)
        return list(session.exec(statement).all())


def get_menu_item(item_id: int) -> Optional[MenuItem]:
    with get_session_context() as session:
        return session.get(MenuItem, item_id)


def create_menu_item(name: str, description: str, price: int, category: str, icon: str) -> MenuItem:
    with get_session_context() as session:
        item = MenuItem(name=name, description=description, price=price, category=category, icon=icon)
        session.add(item)
        session.commit()
        session.refresh(item)
        return item


# === Moods ===

def _mood_statement(user_id: int, bartender_id: int):
    return select(BartenderMood).where(
        BartenderMood.user_id == user_id,
        BartenderMood.bartender_id == bartender_id,
    )


def get_bartender_mood(user_id: int, bartender_id: int) -> Optional[BartenderMood]:
    with get_session_context() as session:
        return session.exec(_mood_statement(user_id, bartender_id)).first()


def get_mood_value(user_id: int, bartender_id: int) -> int:
    """Current mood, or the neutral default when they have never met."""
    mood = get_bartender_mood(user_id, bartender_id)
    return mood.mood if mood is not None else DEFAULT_MOOD


def create_bartender_mood(user_id: int, bartender_id: int, mood: int = DEFAULT_MOOD) -> BartenderMood:
    with get_session_context() as session:
        record = BartenderMood(user_id=user_id, bartender_id=bartender_id, mood=clamp_mood(mood))
        session.add(record)
        session.commit()
        session.refresh(record)
        return record


def update_bartender_mood(user_id: int, bartender_id: int, mood_change: int) -> BartenderMood:
    """
    Shift a bartender's mood toward a user, creating it at 50 first if needed.

    The result is clamped to 0..100.
    """
    with get_session_context() as session:
        record = session.exec(_mood_statement(user_id, bartender_id)).first()
        if record is None:
            record = BartenderMood(user_id=user_id, bartender_id=bartender_id, mood=DEFAULT_MOOD)

        record.mood = clamp_mood(record.mood + mood_change)
        record.updated_at = utc_now()
        session.add(record)
        session.commit()
        session.refresh(record)
        return record


def get_all_bartender_moods_for_user(user_id: int) -> list[BartenderMood]:
    with get_session_context() as session:
        statement = (
            select(BartenderMood)
            .where(BartenderMood.user_id == user_id)
            .order_by(BartenderMood.bartender_id)
        )
        return list(session.exec(statement).all())


# === Memories ===

def _memory_statement(user_id: int, bartender_id: int):
    return select(BartenderMemory).where(
        BartenderMemory.user_id == user_id,
        BartenderMemory.bartender_id == bartender_id,
    )


def _sort_key(entry: dict[str, Any]) -> datetime:
    timestamp = entry["timestamp"]
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp


def get_bartender_memory(user_id: int, bartender_id: int) -> Optional[BartenderMemory]:
    with get_session_context() as session:
        return session.exec(_memory_statement(user_id, bartender_id)).first()


def create_bartender_memory(
    user_id: int,
    bartender_id: int,
    memories: Optional[list[dict[str, Any]]] = None,
) -> BartenderMemory:
    entries = validate_memory_entries(memories or [])
    entries.sort(key=_sort_key, reverse=True)
    with get_session_context() as session:
        record = BartenderMemory(
            user_id=user_id,
            bartender_id=bartender_id,
            memories=safe_json_stringify(entries),
        )
        session.add(record)
        session.commit()
        session.refresh(record)
        return record


def add_memory_entry(
    user_id: int,
    bartender_id: int,
    content: str,
    *,
    type: MemoryType = MemoryType.CONVERSATION,
    importance: int = 3,
    context: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Record something a bartender should remember about a user.

    Entries are kept newest first and capped at MAX_MEMORY_ENTRIES.

    Returns:
        The stored entry (after validation)
    """
    entry = {
        "timestamp": timestamp or datetime.now(timezone.utc),
        "content": content,
        "type": MemoryType(type).value,
        "importance": importance,
    }
    if context:
        entry["context"] = context
    stored = validate_memory_entries([entry])[0]

    limit = get_settings().MAX_MEMORY_ENTRIES

    with get_session_context() as session:
        record = session.exec(_memory_statement(user_id, bartender_id)).first()
        if record is None:
            record = BartenderMemory(user_id=user_id, bartender_id=bartender_id)
            entries = []
        else:
            entries = validate_memory_entries(safe_json_parse(record.memories))

        entries.append(stored)
        entries.sort(key=_sort_key, reverse=True)

        record.memories = safe_json_stringify(entries[:limit])
        record.updated_at = utc_now()
        session.add(record)
        session.commit()

    return stored


def get_memory_entries(user_id: int, bartender_id: int, limit: int = 10) -> list[dict[str, Any]]:
    """Newest-first memory entries."""
    record = get_bartender_memory(user_id, bartender_id)
    if record is None:
        return []
    entries = validate_memory_entries(safe_json_parse(record.memories))
    entries.sort(key=_sort_key, reverse=True)
    return entries[:limit]


def get_summarized_memories(user_id: int, bartender_id: int, max_entries: int = 5) -> str:
    """
    One line per remembered entry, for prompting:

        [2024-05-01, type: preference, importance: 4] Loves Dwarven Mead
    """
    entries = get_memory_entries(user_id, bartender_id, max_entries)
    if not entries:
        return NO_MEMORIES_SUMMARY

    return "\n".join(
        f"[{entry['timestamp'].date().isoformat()}, type: {entry['type']}, "
        f"importance: {entry['importance']}] {entry['content']}"
        for entry in entries
    )
