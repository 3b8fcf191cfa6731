"""
Inventory service: the item catalogue and what each patron carries.

Each user holds at most one stack (row) per item. Stackable items grow up
to their max_stack (99 when unset); non-stackable items stay at quantity 1.
"""
import json
from typing import Optional, Any

from sqlmodel import Session, select

from pixel_tavern.db.models import Item, User, UserInventory, utc_now
from pixel_tavern.deps import get_session_context
from pixel_tavern.errors import NotFoundError, TavernValidationError
from pixel_tavern.protocol import EquipmentSlot
from pixel_tavern.schemas import InventoryEntryOut, ItemOut


DEFAULT_MAX_STACK = 99


# === Catalogue ===

def get_items() -> list[Item]:
    with get_session_context() as session:
        return list(session.exec(select(Item).order_by(Item.id)).all())


def get_item(item_id: int) -> Optional[Item]:
    with get_session_context() as session:
        return session.get(Item, item_id)


def create_item(
    name: str,
    description: str,
    type: str,
    *,
    rarity: str = "common",
    value: int = 0,
    weight: int = 1,
    stackable: bool = False,
    max_stack: Optional[int] = None,
    icon: str = "default_item",
    stats: Optional[dict[str, Any]] = None,
) -> Item:
    with get_session_context() as session:
        item = Item(
            name=name,
            description=description,
            type=type,
            rarity=rarity,
            value=value,
            weight=weight,
            stackable=stackable,
            max_stack=max_stack,
            icon=icon,
            stats=json.dumps(stats or {}),
        )
        session.add(item)
        session.commit()
        session.refresh(item)
        return item


# === Serialization ===

def to_entry_out(entry: UserInventory, item: Optional[Item]) -> InventoryEntryOut:
    """Inventory row joined with its catalogue item."""
    return InventoryEntryOut(
        id=entry.id,
        user_id=entry.user_id,
        item_id=entry.item_id,
        quantity=entry.quantity,
        equipped=entry.equipped,
        equip_slot=entry.equip_slot,
        updated_at=entry.updated_at,
        item=ItemOut.model_validate(item) if item is not None else None,
    )


# === Session-level helpers ===

def _find_entry(session: Session, user_id: int, item_id: int) -> Optional[UserInventory]:
    statement = select(UserInventory).where(
        UserInventory.user_id == user_id,
        UserInventory.item_id == item_id,
    )
    return session.exec(statement).first()


def _add(session: Session, user_id: int, item_id: int, quantity: int) -> UserInventory:
    item = session.get(Item, item_id)
    if item is None:
        raise NotFoundError("Item not found")

    entry = _find_entry(session, user_id, item_id)
    if entry is not None:
        if item.stackable:
            entry.quantity = min(entry.quantity + quantity, item.max_stack or DEFAULT_MAX_STACK)
        entry.updated_at = utc_now()
    else:
        entry = UserInventory(
            user_id=user_id,
            item_id=item_id,
            quantity=min(quantity, item.max_stack or DEFAULT_MAX_STACK) if item.stackable else 1,
        )

    session.add(entry)
    return entry


def _remove(session: Session, user_id: int, item_id: int, quantity: int) -> bool:
    entry = _find_entry(session, user_id, item_id)
    if entry is None:
        return False

    if entry.quantity <= quantity:
        session.delete(entry)
    else:
        entry.quantity -= quantity
        entry.updated_at = utc_now()
        session.add(entry)
    return True


def _has(session: Session, user_id: int, item_id: int, quantity: int) -> bool:
    entry = _find_entry(session, user_id, item_id)
    return entry is not None and entry.quantity >= quantity


def _require_user(session: Session, user_id: int) -> None:
    if session.get(User, user_id) is None:
        raise NotFoundError("User not found")


# === Inventory ===

def get_user_inventory(user_id: int) -> list[InventoryEntryOut]:
    with get_session_context() as session:
        statement = (
            select(UserInventory, Item)
            .join(Item, Item.id == UserInventory.item_id)
            .where(UserInventory.user_id == user_id)
            .order_by(UserInventory.id)
        )
        return [to_entry_out(entry, item) for entry, item in session.exec(statement).all()]


def get_user_inventory_item(user_id: int, item_id: int) -> Optional[UserInventory]:
    with get_session_context() as session:
        return _find_entry(session, user_id, item_id)


def add_item_to_inventory(user_id: int, item_id: int, quantity: int = 1) -> InventoryEntryOut:
    """
    Give a user an item.

    Raises:
        NotFoundError: unknown user or item
    """
    if quantity < 1:
        raise TavernValidationError("Quantity must be at least 1")

    with get_session_context() as session:
        _require_user(session, user_id)
        entry = _add(session, user_id, item_id, quantity)
        session.commit()
        session.refresh(entry)
        return to_entry_out(entry, session.get(Item, item_id))


def remove_item_from_inventory(user_id: int, item_id: int, quantity: int = 1) -> bool:
    """
    Take items away; the stack disappears when it reaches zero.

    Returns:
        False if the user does not hold the item
    """
    with get_session_context() as session:
        removed = _remove(session, user_id, item_id, quantity)
        session.commit()
        return removed


def has_item(user_id: int, item_id: int, quantity: int = 1) -> bool:
    with get_session_context() as session:
        return _has(session, user_id, item_id, quantity)


# === Equipment ===

def parse_slot(slot: str) -> EquipmentSlot:
    try:
        return EquipmentSlot(slot)
    except ValueError:
        raise TavernValidationError("Invalid equipment slot") from None


def equip_item(user_id: int, item_id: int, slot: str) -> Optional[InventoryEntryOut]:
    """
    Equip a held item into a slot, unequipping whatever occupied it.

    Raises:
        TavernValidationError: slot is not an EquipmentSlot

    Returns:
        The equipped entry, or None if the user does not hold the item
    """
    slot_value = parse_slot(slot).value

    with get_session_context() as session:
        entry = _find_entry(session, user_id, item_id)
        if entry is None:
            return None

        occupants = session.exec(
            select(UserInventory).where(
                UserInventory.user_id == user_id,
                UserInventory.equipped == True,  # noqa: E712
                UserInventory.equip_slot == slot_value,
                UserInventory.id != entry.id,
            )
        ).all()
        for occupant in occupants:
            occupant.equipped = False
            occupant.equip_slot = None
            occupant.updated_at = utc_now()
            session.add(occupant)

        entry.equipped = True
        entry.equip_slot = slot_value
        entry.updated_at = utc_now()
        session.add(entry)
        session.commit()
        session.refresh(entry)
        return to_entry_out(entry, session.get(Item, item_id))


def unequip_item(user_id: int, item_id: int) -> Optional[InventoryEntryOut]:
    """
    Returns:
        The unequipped entry, or None if the item is not held or not equipped
    """
    with get_session_context() as session:
        entry = _find_entry(session, user_id, item_id)
        if entry is None or not entry.equipped:
            return None

        entry.equipped = False
        entry.equip_slot = None
        entry.updated_at = utc_now()
        session.add(entry)
        session.commit()
        session.refresh(entry)
        return to_entry_out(entry, session.get(Item, item_id))


def get_equipped_items(user_id: int) -> list[InventoryEntryOut]:
    with get_session_context() as session:
        statement = (
            select(UserInventory, Item)
            .join(Item, Item.id == UserInventory.item_id)
            .where(UserInventory.user_id == user_id, UserInventory.equipped == True)  # noqa: E712
            .order_by(UserInventory.id)
        )
        return [to_entry_out(entry, item) for entry, item in session.exec(statement).all()]


# === Trading & Crafting ===

def transfer_item(sender_id: int, receiver_id: int, item_id: int, quantity: int = 1) -> bool:
    """
    Move items between users in one transaction.

    Returns:
        False if the sender holds fewer than `quantity`

    Raises:
        NotFoundError: unknown receiver
    """
    with get_session_context() as session:
        if not _has(session, sender_id, item_id, quantity):
            return False
        _require_user(session, receiver_id)

        _remove(session, sender_id, item_id, quantity)
        _add(session, receiver_id, item_id, quantity)
        session.commit()
        return True


def craft_item(user_id: int, crafted_item_id: int, materials: list[dict[str, int]]) -> Optional[Item]:
    """
    Consume materials and grant one crafted item.

    Args:
        materials: [{"item_id": ..., "quantity": ...}, ...]

    Returns:
        The crafted item, or None when a material is missing or the
        crafted item does not exist (nothing is consumed in either case)
    """
    with get_session_context() as session:
        for material in materials:
            if not _has(session, user_id, material["item_id"], material.get("quantity", 1)):
                print(f"⚠️  User {user_id} is missing material {material['item_id']} for crafting")
                return None

        crafted = session.get(Item, crafted_item_id)
        if crafted is None:
            print(f"⚠️  Crafted item {crafted_item_id} not found")
            return None

        for material in materials:
            _remove(session, user_id, material["item_id"], material.get("quantity", 1))
        # Flush deletions before re-adding in case the product is also a material
        session.flush()
        _add(session, user_id, crafted_item_id, 1)
        session.commit()
        session.refresh(crafted)
        return crafted
