"""
WebSocket protocol surface shared with the browser client.

Every frame is a JSON object {"type": <WebSocketMessageType>, "payload": {...}}.
"""
import json
from enum import Enum
from typing import Any, Optional


class WebSocketMessageType(str, Enum):
    JOIN_ROOM = "join_room"
    LEAVE_ROOM = "leave_room"
    SEND_MESSAGE = "send_message"
    USER_JOINED = "user_joined"
    USER_LEFT = "user_left"
    NEW_MESSAGE = "new_message"
    ORDER_ITEM = "order_item"
    BARTENDER_RESPONSE = "bartender_response"
    BARTENDER_GREETING = "bartender_greeting"
    ROOM_USERS = "room_users"
    BARTENDER_MOOD_UPDATE = "bartender_mood_update"
    BARTENDER_MEMORY_UPDATE = "bartender_memory_update"
    BARTENDER_MEMORY_RECOLLECTION = "bartender_memory_recollection"
    AUTH_LOGIN = "auth_login"
    INVENTORY_GET = "inventory_get"
    INVENTORY_UPDATE = "inventory_update"
    INVENTORY_EQUIP_ITEM = "inventory_equip_item"
    INVENTORY_UNEQUIP_ITEM = "inventory_unequip_item"
    CURRENCY_UPDATE = "currency_update"
    ERROR = "error"


class MessageKind(str, Enum):
    """Value of messages.type."""
    USER = "user"
    SYSTEM = "system"
    BARTENDER = "bartender"
    EMOTE = "emote"


class MemoryType(str, Enum):
    PREFERENCE = "preference"
    EVENT = "event"
    CONVERSATION = "conversation"
    PERSONAL = "personal"


class EquipmentSlot(str, Enum):
    HEAD = "head"
    NECK = "neck"
    CHEST = "chest"
    HANDS = "hands"
    WAIST = "waist"
    LEGS = "legs"
    FEET = "feet"
    MAIN_HAND = "mainHand"
    OFF_HAND = "offHand"
    RING1 = "ring1"
    RING2 = "ring2"
    TRINKET1 = "trinket1"
    TRINKET2 = "trinket2"


class UnknownMessageTypeError(ValueError):
    """Frame decoded fine but its type is not part of the protocol."""


def envelope(message_type: WebSocketMessageType, payload: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Build a {type, payload} frame."""
    return {"type": message_type.value, "payload": payload or {}}


def error_envelope(message: str) -> dict[str, Any]:
    return envelope(WebSocketMessageType.ERROR, {"message": message})


def parse_frame(raw: str) -> tuple[WebSocketMessageType, dict[str, Any]]:
    """
    Decode an incoming text frame.

    Raises:
        UnknownMessageTypeError: type is missing or not a WebSocketMessageType
        ValueError: frame is not a JSON object, or its payload is not an object
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Frame must be a JSON object")

    try:
        message_type = WebSocketMessageType(data.get("type"))
    except ValueError:
        raise UnknownMessageTypeError(f"Unknown message type: {data.get('type')}") from None

    payload = data.get("payload")
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValueError("Payload must be a JSON object")

    return message_type, payload
