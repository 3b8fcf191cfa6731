"""
Inventory and currency endpoints.

Changes made here are also pushed to the user's open sockets
(`inventory_update` / `currency_update`) so the in-game panels stay current.
"""
from fastapi import APIRouter

from pixel_tavern.errors import InsufficientFundsError, NotFoundError
from pixel_tavern.protocol import WebSocketMessageType
from pixel_tavern.schemas import (
    CurrencyChangeRequest,
    CurrencyOut,
    EquipRequest,
    InventoryChangeRequest,
    ItemOut,
    UnequipRequest,
)
from pixel_tavern.services import accounts, inventory
from pixel_tavern.services.chat import hub, inventory_payload


router = APIRouter(prefix="/api/inventory", tags=["inventory"])


async def _push_inventory(user_id: int) -> None:
    await hub.send_to_user(user_id, WebSocketMessageType.INVENTORY_UPDATE, inventory_payload(user_id))


async def _push_currency(user_id: int, currency: dict[str, int]) -> None:
    await hub.send_to_user(user_id, WebSocketMessageType.CURRENCY_UPDATE, {"currency": currency})


# === Catalogue ===

@router.get("/items")
async def list_items():
    return {"items": [ItemOut.model_validate(i).to_wire() for i in inventory.get_items()]}


@router.get("/items/{item_id}")
async def get_item(item_id: int):
    item = inventory.get_item(item_id)
    if item is None:
        raise NotFoundError("Item not found")
    return {"item": ItemOut.model_validate(item).to_wire()}


# === User Inventory ===

@router.get("/user/{user_id}/inventory")
async def get_inventory(user_id: int):
    accounts.require_user(user_id)
    return {"inventory": [e.to_wire() for e in inventory.get_user_inventory(user_id)]}


@router.get("/user/{user_id}/equipped")
async def get_equipped(user_id: int):
    accounts.require_user(user_id)
    return {"equipped": [e.to_wire() for e in inventory.get_equipped_items(user_id)]}


@router.post("/user/{user_id}/inventory/add")
async def add_to_inventory(user_id: int, request: InventoryChangeRequest):
    entry = inventory.add_item_to_inventory(user_id, request.item_id, request.quantity)
    await _push_inventory(user_id)
    return {"message": "Item added to inventory", "inventoryItem": entry.to_wire()}


@router.post("/user/{user_id}/inventory/remove")
async def remove_from_inventory(user_id: int, request: InventoryChangeRequest):
    if not inventory.remove_item_from_inventory(user_id, request.item_id, request.quantity):
        raise NotFoundError("Item not found in inventory")

    await _push_inventory(user_id)
    return {"message": "Item removed from inventory"}


@router.post("/user/{user_id}/inventory/equip")
async def equip(user_id: int, request: EquipRequest):
    entry = inventory.equip_item(user_id, request.item_id, request.slot.value)
    if entry is None:
        raise NotFoundError("Item not found in inventory")

    await _push_inventory(user_id)
    return {"message": "Item equipped", "equippedItem": entry.to_wire()}


@router.post("/user/{user_id}/inventory/unequip")
async def unequip(user_id: int, request: UnequipRequest):
    entry = inventory.unequip_item(user_id, request.item_id)
    if entry is None:
        raise NotFoundError("Item not found or not equipped")

    await _push_inventory(user_id)
    return {"message": "Item unequipped", "unequippedItem": entry.to_wire()}


# === Currency ===

@router.get("/user/{user_id}/currency")
async def get_currency(user_id: int):
    currency = accounts.get_currency(user_id)
    return {"currency": CurrencyOut(**currency).to_wire()}


@router.post("/user/{user_id}/currency/add")
async def add_currency(user_id: int, request: CurrencyChangeRequest):
    currency = accounts.add_currency(user_id, request.silver)
    await _push_currency(user_id, currency)
    return {"message": "Currency added", "currency": CurrencyOut(**currency).to_wire()}


@router.post("/user/{user_id}/currency/spend")
async def spend_currency(user_id: int, request: CurrencyChangeRequest):
    currency = accounts.spend_currency(user_id, request.silver)
    if currency is None:
        raise InsufficientFundsError("Insufficient funds")

    await _push_currency(user_id, currency)
    return {"message": "Currency spent", "currency": CurrencyOut(**currency).to_wire()}
