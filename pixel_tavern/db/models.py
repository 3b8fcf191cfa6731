"""
SQLModel database models for the tavern.

JSON-valued attributes (item stats, bartender memories) are stored as
JSON text and decoded with pixel_tavern.utils.json_helpers.
"""
from typing import Optional
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field, Column, Text, Index, UniqueConstraint


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """
    Tavern patron.

    Guests joining over the WebSocket have no email or password; registered
    accounts carry both. Currency is kept as silver plus gold (100:1).
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)

    username: str = Field(index=True, unique=True, max_length=64)
    email: Optional[str] = Field(default=None, unique=True, max_length=255)
    password_hash: Optional[str] = Field(default=None, max_length=255)
    avatar: str = Field(default="knight", max_length=64)

    room_id: int = Field(default=1)
    joined_at: datetime = Field(default_factory=utc_now, nullable=False)
    online: bool = Field(default=True)

    level: int = Field(default=1, ge=1)
    silver: int = Field(default=100, ge=0)
    gold: int = Field(default=0, ge=0)


class Room(SQLModel, table=True):
    """Chat room with its resident bartender."""
    __tablename__ = "rooms"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, max_length=120)
    description: str = Field(sa_column=Column(Text, nullable=False))
    bartender_id: Optional[int] = Field(default=None, foreign_key="bartenders.id")


class Message(SQLModel, table=True):
    """
    Chat line posted in a room.

    type is one of user, system, bartender, emote. System and bartender
    lines have no user_id.
    """
    __tablename__ = "messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="users.id")
    room_id: int = Field(foreign_key="rooms.id")
    content: str = Field(sa_column=Column(Text, nullable=False))
    type: str = Field(default="user", max_length=20)
    bartender_id: Optional[int] = Field(default=None, foreign_key="bartenders.id")
    timestamp: datetime = Field(default_factory=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_messages_room_timestamp", "room_id", "timestamp"),
    )


class Bartender(SQLModel, table=True):
    """NPC serving a room."""
    __tablename__ = "bartenders"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=64)
    sprite: str = Field(max_length=64)
    avatar: str = Field(max_length=64)
    personality: str = Field(sa_column=Column(Text, nullable=False))
    level: int = Field(default=1, ge=1)


class MenuItem(SQLModel, table=True):
    __tablename__ = "menu_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=120)
    description: str = Field(sa_column=Column(Text, nullable=False))
    price: int = Field(ge=0)
    category: str = Field(index=True, max_length=20)  # drinks, food, specials
    icon: str = Field(max_length=64)


class BartenderMood(SQLModel, table=True):
    """A bartender's disposition toward one user, 0 (hostile) to 100 (adoring)."""
    __tablename__ = "bartender_moods"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    bartender_id: int = Field(foreign_key="bartenders.id")
    mood: int = Field(default=50, ge=0, le=100)
    updated_at: datetime = Field(default_factory=utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "bartender_id", name="uq_mood_user_bartender"),
    )


class BartenderMemory(SQLModel, table=True):
    """
    What a bartender remembers about one user.

    memories is a JSON array of entries:
    {timestamp, content, context?, type, importance}
    """
    __tablename__ = "bartender_memories"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    bartender_id: int = Field(foreign_key="bartenders.id")
    memories: str = Field(default="[]", sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=utc_now, nullable=False)
    updated_at: datetime = Field(default_factory=utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "bartender_id", name="uq_memory_user_bartender"),
    )


class Item(SQLModel, table=True):
    """Catalogue entry for something a patron can carry."""
    __tablename__ = "items"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=120)
    description: str = Field(sa_column=Column(Text, nullable=False))
    type: str = Field(index=True, max_length=32)  # weapon, armor, consumable, accessory, quest
    rarity: str = Field(default="common", max_length=20)
    value: int = Field(default=0, ge=0)
    weight: int = Field(default=1, ge=0)
    stackable: bool = Field(default=False)
    max_stack: Optional[int] = Field(default=None, ge=1)
    icon: str = Field(default="default_item", max_length=64)

    # JSON object, e.g. {"damage": 3, "requirements": {"level": 1}}
    stats: str = Field(default="{}", sa_column=Column(Text, nullable=False))

    created_at: datetime = Field(default_factory=utc_now, nullable=False)


class UserInventory(SQLModel, table=True):
    """One stack of an item held by a user."""
    __tablename__ = "user_inventory"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    item_id: int = Field(foreign_key="items.id")
    quantity: int = Field(default=1, ge=0)
    equipped: bool = Field(default=False)
    equip_slot: Optional[str] = Field(default=None, max_length=20)
    updated_at: datetime = Field(default_factory=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_inventory_user_item", "user_id", "item_id"),
    )
