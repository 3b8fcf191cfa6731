"""
Pydantic schemas for API request/response models and WebSocket payloads.

Design principles:
- Separate input/output schemas for clear boundaries
- camelCase on the wire (the browser client's convention), snake_case in Python
- Password hashes never appear in an output schema
"""
from typing import Optional, Any, Literal
from datetime import datetime
from pydantic import BaseModel, Field, field_validator, ConfigDict
from pydantic.alias_generators import to_camel

from pixel_tavern.protocol import EquipmentSlot, MemoryType
from pixel_tavern.utils.json_helpers import safe_json_parse


class CamelModel(BaseModel):
    """Base for every wire schema: accepts and emits camelCase keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# === User Schemas ===

class UserOut(CamelModel):
    id: int
    username: str
    email: Optional[str] = None
    avatar: str
    room_id: int
    joined_at: datetime
    online: bool
    level: int
    silver: int
    gold: int


class CurrencyOut(CamelModel):
    silver: int
    gold: int


# === Room / Message Schemas ===

class RoomIn(CamelModel):
    """Input schema for creating a room."""
    name: str = Field(min_length=1, max_length=120)
    description: str = Field(min_length=1, max_length=1000)
    bartender_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure name is not just whitespace."""
        if not v.strip():
            raise ValueError("Room name cannot be empty or whitespace only")
        return v.strip()


class RoomOut(CamelModel):
    id: int
    name: str
    description: str
    bartender_id: Optional[int] = None


class MessageOut(CamelModel):
    id: int
    user_id: Optional[int] = None
    room_id: int
    content: str
    type: str
    bartender_id: Optional[int] = None
    timestamp: datetime


# === Bartender Schemas ===

class BartenderOut(CamelModel):
    id: int
    name: str
    sprite: str
    avatar: str
    personality: str
    level: int


class MenuItemOut(CamelModel):
    id: int
    name: str
    description: str
    price: int
    category: str
    icon: str


class MoodOut(CamelModel):
    """A bartender's mood toward a user, with its human-readable band."""
    user_id: int
    bartender_id: int
    bartender_name: Optional[str] = None
    mood: int = Field(ge=0, le=100)
    description: str
    icon: str
    updated_at: Optional[datetime] = None


class MemoryEntry(CamelModel):
    timestamp: datetime
    content: str
    context: Optional[str] = None
    type: MemoryType
    importance: int = Field(default=3, ge=1, le=5)


# === Item / Inventory Schemas ===

class ItemOut(CamelModel):
    id: int
    name: str
    description: str
    type: str
    rarity: str
    value: int
    weight: int
    stackable: bool
    max_stack: Optional[int] = None
    icon: str
    stats: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @field_validator("stats", mode="before")
    @classmethod
    def decode_stats(cls, v: Any) -> Any:
        """Stats are stored as JSON text."""
        decoded = safe_json_parse(v)
        return decoded if isinstance(decoded, dict) else {}


class InventoryEntryOut(CamelModel):
    id: int
    user_id: int
    item_id: int
    quantity: int
    equipped: bool
    equip_slot: Optional[str] = None
    updated_at: datetime
    item: Optional[ItemOut] = None


# === Auth Schemas ===

class LoginRequest(CamelModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=256)


class RegisterRequest(CamelModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6, max_length=256)
    email: Optional[str] = Field(default=None, max_length=255)
    avatar: str = Field(default="knight", max_length=64)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Username cannot be empty or whitespace only")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Invalid email address")
        return v


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1, max_length=256)
    new_password: str = Field(min_length=6, max_length=256)


class AuthResponse(CamelModel):
    message: str
    user: UserOut


# === Inventory Request Schemas ===

class InventoryChangeRequest(CamelModel):
    """Body of inventory add/remove requests and the addItem/removeItem actions."""
    item_id: int
    quantity: int = Field(default=1, ge=1)


class EquipRequest(CamelModel):
    item_id: int
    slot: EquipmentSlot


class UnequipRequest(CamelModel):
    item_id: int


class CurrencyChangeRequest(CamelModel):
    silver: int = Field(ge=0)


# === Action Schemas ===

class GoldUpdate(CamelModel):
    new_gold: int = Field(ge=0)


class LevelUpdate(CamelModel):
    new_level: int = Field(ge=1)


# === WebSocket Payloads ===

class UserJoinPayload(CamelModel):
    """First frame of a guest session."""
    username: str = Field(min_length=1, max_length=64)
    avatar: str = Field(default="knight", max_length=64)
    room_id: Optional[int] = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Username cannot be empty or whitespace only")
        return v.strip()


class JoinRoomPayload(CamelModel):
    room_id: int


class SendMessagePayload(CamelModel):
    content: str = Field(min_length=1, max_length=1000)
    type: Literal["user", "emote"] = "user"

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message cannot be empty or whitespace only")
        return v.strip()


class OrderItemPayload(CamelModel):
    item_id: int


# === Health Check Schemas ===

class HealthStatus(BaseModel):
    """System health status."""
    status: str  # ok, degraded, unhealthy
    service: str
    timestamp: datetime

    # Component statuses
    database: dict[str, Any]
    ai: dict[str, Any]
    connections: int = 0


# === Error Schemas ===

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    code: Optional[str] = None
