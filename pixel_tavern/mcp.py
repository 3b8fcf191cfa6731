"""
Action dispatcher for game-state changes (gold, levels, inventory).

Actions are named by string, validated against an enum and routed to an
async handler from a static table.

Usage:
    mcp = MCP()
    user = await mcp.handle_user_action(1, "updateGold", {"newGold": 50})
"""
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from pixel_tavern.db.models import Bartender, User
from pixel_tavern.errors import InvalidActionError, NotFoundError, TavernValidationError
from pixel_tavern.schemas import GoldUpdate, InventoryChangeRequest, InventoryEntryOut, LevelUpdate
from pixel_tavern.services import accounts, bartenders, inventory


class UserActionType(str, Enum):
    UPDATE_GOLD = "updateGold"
    UPDATE_LEVEL = "updateLevel"


class BartenderActionType(str, Enum):
    UPDATE_LEVEL = "updateLevel"


class InventoryActionType(str, Enum):
    ADD_ITEM = "addItem"
    REMOVE_ITEM = "removeItem"


E = TypeVar("E", bound=Enum)
M = TypeVar("M", bound=BaseModel)


def resolve_action(enum_cls: Type[E], action: Any) -> Optional[E]:
    """
    Match an action by value ("updateGold") or member name ("UpdateGold",
    "UPDATE_GOLD").
    """
    if isinstance(action, enum_cls):
        return action
    if not isinstance(action, str):
        return None

    for member in enum_cls:
        if action == member.value:
            return member

    wanted = action.replace("_", "").lower()
    for member in enum_cls:
        if wanted == member.name.replace("_", "").lower():
            return member
    return None


def parse_action_data(model: Type[M], data: Optional[dict[str, Any]]) -> M:
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise TavernValidationError(f"Invalid action data: {fields}") from None


# === Handlers ===

async def update_gold(user_id: int, data: Optional[dict[str, Any]]) -> User:
    update = parse_action_data(GoldUpdate, data)
    return accounts.set_user_gold(user_id, update.new_gold)


async def update_user_level(user_id: int, data: Optional[dict[str, Any]]) -> User:
    update = parse_action_data(LevelUpdate, data)
    return accounts.set_user_level(user_id, update.new_level)


async def update_bartender_level(user_id: int, bartender_id: int, data: Optional[dict[str, Any]]) -> Bartender:
    accounts.require_user(user_id)
    update = parse_action_data(LevelUpdate, data)
    return bartenders.update_bartender_level(bartender_id, update.new_level)


async def add_item(user_id: int, data: Optional[dict[str, Any]]) -> list[InventoryEntryOut]:
    change = parse_action_data(InventoryChangeRequest, data)
    inventory.add_item_to_inventory(user_id, change.item_id, change.quantity)
    return inventory.get_user_inventory(user_id)


async def remove_item(user_id: int, data: Optional[dict[str, Any]]) -> list[InventoryEntryOut]:
    change = parse_action_data(InventoryChangeRequest, data)
    accounts.require_user(user_id)
    if not inventory.remove_item_from_inventory(user_id, change.item_id, change.quantity):
        raise NotFoundError("Item not found in inventory")
    return inventory.get_user_inventory(user_id)


USER_ACTION_HANDLERS: dict[UserActionType, Callable[..., Awaitable[Any]]] = {
    UserActionType.UPDATE_GOLD: update_gold,
    UserActionType.UPDATE_LEVEL: update_user_level,
}

BARTENDER_ACTION_HANDLERS: dict[BartenderActionType, Callable[..., Awaitable[Any]]] = {
    BartenderActionType.UPDATE_LEVEL: update_bartender_level,
}

INVENTORY_ACTION_HANDLERS: dict[InventoryActionType, Callable[..., Awaitable[Any]]] = {
    InventoryActionType.ADD_ITEM: add_item,
    InventoryActionType.REMOVE_ITEM: remove_item,
}


class MCP:
    """Routes named actions to their handlers."""

    def __init__(
        self,
        user_handlers: Optional[dict[UserActionType, Callable[..., Awaitable[Any]]]] = None,
        bartender_handlers: Optional[dict[BartenderActionType, Callable[..., Awaitable[Any]]]] = None,
        inventory_handlers: Optional[dict[InventoryActionType, Callable[..., Awaitable[Any]]]] = None,
    ):
        self.user_handlers = USER_ACTION_HANDLERS if user_handlers is None else user_handlers
        self.bartender_handlers = BARTENDER_ACTION_HANDLERS if bartender_handlers is None else bartender_handlers
        self.inventory_handlers = INVENTORY_ACTION_HANDLERS if inventory_handlers is None else inventory_handlers

    async def handle_user_action(self, user_id: int, action: str, data: Optional[dict[str, Any]] = None) -> User:
        action_type = resolve_action(UserActionType, action)
        if action_type is None:
            raise InvalidActionError(f"Invalid user action: {action}")

        handler = self.user_handlers.get(action_type)
        if handler is None:
            raise InvalidActionError(f"No handler found for user action: {action}")

        return await handler(user_id, data)

    async def handle_bartender_action(
        self,
        user_id: int,
        bartender_id: int,
        action: str,
        data: Optional[dict[str, Any]] = None,
    ) -> Bartender:
        action_type = resolve_action(BartenderActionType, action)
        if action_type is None:
            raise InvalidActionError(f"Invalid bartender action: {action}")

        handler = self.bartender_handlers.get(action_type)
        if handler is None:
            raise InvalidActionError(f"No handler found for bartender action: {action}")

        return await handler(user_id, bartender_id, data)

    async def handle_inventory_action(
        self,
        user_id: int,
        action: str,
        data: Optional[dict[str, Any]] = None,
    ) -> list[InventoryEntryOut]:
        action_type = resolve_action(InventoryActionType, action)
        if action_type is None:
            raise InvalidActionError(f"Invalid inventory action: {action}")

        handler = self.inventory_handlers.get(action_type)
        if handler is None:
            raise InvalidActionError(f"No handler found for inventory action: {action}")

        return await handler(user_id, data)


mcp = MCP()
