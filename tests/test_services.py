"""
Tests for the tavern service layer (accounts, rooms, bartenders, inventory).
"""
from datetime import datetime, timedelta, timezone

import pytest

from pixel_tavern.errors import ConflictError, NotFoundError, TavernValidationError
from pixel_tavern.protocol import MemoryType, MessageKind
from pixel_tavern.services import accounts, bartenders, inventory, rooms
from pixel_tavern.services.bartenders import NO_MEMORIES_SUMMARY


# === Accounts ===

def test_password_hash_roundtrip():
    stored = accounts.hash_password("hunter22")

    assert "$" in stored
    assert "hunter22" not in stored
    assert accounts.verify_password("hunter22", stored)
    assert not accounts.verify_password("hunter23", stored)
    assert not accounts.verify_password("hunter22", None)
    assert not accounts.verify_password("hunter22", "not-a-hash")


def test_create_user_defaults():
    user = accounts.create_user("Tamsin", "mage")

    assert user.id is not None
    assert user.avatar == "mage"
    assert user.room_id == 1
    assert user.online is True
    assert (user.level, user.silver, user.gold) == (1, 100, 0)


def test_create_user_duplicate_is_case_insensitive():
    accounts.create_user("Tamsin")

    with pytest.raises(ConflictError, match="Username already taken"):
        accounts.create_user("tamsin")


def test_register_and_verify():
    user = accounts.register_user("Oskar", "s3cret!", email="oskar@example.com")
    assert user.password_hash

    assert accounts.verify_user("Oskar", "wrong") is None
    assert accounts.verify_user("Nobody", "s3cret!") is None

    accounts.update_user_status(user.id, False)
    verified = accounts.verify_user("oskar", "s3cret!")
    assert verified.id == user.id
    assert verified.online is True


def test_register_conflicts():
    accounts.register_user("Oskar", "s3cret!", email="oskar@example.com")

    with pytest.raises(ConflictError, match="Username already taken"):
        accounts.register_user("Oskar", "another")
    with pytest.raises(ConflictError, match="Email already registered"):
        accounts.register_user("Osk", "another", email="OSKAR@example.com")


def test_guest_cannot_log_in():
    accounts.create_user("Guesty")
    assert accounts.verify_user("Guesty", "") is None


def test_change_password():
    user = accounts.register_user("Ilse", "first-pass")

    assert accounts.change_password(user.id, "nope", "second-pass") is False
    assert accounts.change_password(user.id, "first-pass", "second-pass") is True
    assert accounts.verify_user("Ilse", "second-pass") is not None

    with pytest.raises(NotFoundError):
        accounts.change_password(99999, "a", "b")


def test_online_users_and_reset():
    a = accounts.create_user("A", room_id=1)
    accounts.create_user("B", room_id=2)
    accounts.create_user("C", room_id=1, online=False)

    assert [u.username for u in accounts.get_online_users(1)] == ["A"]
    assert len(accounts.get_online_users()) == 2

    assert accounts.reset_online_status() == 2
    assert accounts.get_online_users() == []
    assert accounts.get_user(a.id).online is False


def test_currency_rolls_silver_into_gold():
    user = accounts.create_user("Coins")

    assert accounts.get_currency(user.id) == {"silver": 100, "gold": 0}
    assert accounts.add_currency(user.id, 250) == {"silver": 50, "gold": 3}


def test_spend_currency_breaks_gold():
    user = accounts.create_user("Spender")
    accounts.add_currency(user.id, 100)  # 0 silver, 2 gold

    assert accounts.spend_currency(user.id, 30) == {"silver": 70, "gold": 1}
    assert accounts.spend_currency(user.id, 1000) is None
    assert accounts.get_currency(user.id) == {"silver": 70, "gold": 1}


def test_currency_unknown_user():
    with pytest.raises(NotFoundError):
        accounts.add_currency(12345, 10)
    with pytest.raises(NotFoundError):
        accounts.get_currency(12345)


# === Rooms ===

def test_bartender_for_room():
    assert rooms.bartender_for_room(1).name == "Amethyst"
    assert rooms.bartender_for_room(3).name == "Ruby"

    room = rooms.create_room("Attic", "Dusty.")
    # No resident and no bartender with that id: first bartender covers
    assert rooms.bartender_for_room(room.id).name == "Amethyst"


def test_message_history_is_oldest_first_and_limited():
    for i in range(5):
        rooms.create_message(2, f"line {i}", type=MessageKind.USER)
    rooms.create_system_message(1, "elsewhere")

    history = rooms.get_messages_by_room(2, limit=3)
    assert [m.content for m in history] == ["line 2", "line 3", "line 4"]
    assert all(m.type == "user" for m in history)


def test_create_room_conflict():
    with pytest.raises(ConflictError):
        rooms.create_room("the rose garden", "Copycat")


# === Bartenders: moods ===

def test_mood_defaults_and_clamping():
    user = accounts.create_user("Moody")

    assert bartenders.get_mood_value(user.id, 1) == 50
    assert bartenders.update_bartender_mood(user.id, 1, 30).mood == 80
    assert bartenders.update_bartender_mood(user.id, 1, 40).mood == 100
    assert bartenders.update_bartender_mood(user.id, 1, -250).mood == 0
    assert bartenders.get_mood_value(user.id, 1) == 0


def test_moods_for_user():
    user = accounts.create_user("Social")
    bartenders.update_bartender_mood(user.id, 3, 5)
    bartenders.update_bartender_mood(user.id, 1, -5)

    moods = bartenders.get_all_bartender_moods_for_user(user.id)
    assert {(m.bartender_id, m.mood) for m in moods} == {(1, 45), (3, 55)}


def test_update_bartender_level():
    assert bartenders.update_bartender_level(2, 7).level == 7
    assert bartenders.get_bartender(2).level == 7

    with pytest.raises(NotFoundError, match="Bartender not found"):
        bartenders.update_bartender_level(99, 2)


def test_menu_lookup():
    assert bartenders.get_bartender_by_name("ruby").name == "Ruby"
    assert bartenders.get_menu_item(1).name == "Dragon's Breath Ale"
    assert bartenders.get_menu_item(999) is None
    assert {m.category for m in bartenders.get_menu_items("food")} == {"food"}


# === Bartenders: memories ===

def test_memories_are_newest_first():
    user = accounts.create_user("Rememberme")
    now = datetime.now(timezone.utc)

    bartenders.add_memory_entry(user.id, 1, "old", timestamp=now - timedelta(days=2))
    bartenders.add_memory_entry(user.id, 1, "new", timestamp=now)
    bartenders.add_memory_entry(user.id, 1, "middle", timestamp=now - timedelta(days=1))

    entries = bartenders.get_memory_entries(user.id, 1)
    assert [e["content"] for e in entries] == ["new", "middle", "old"]
    assert bartenders.get_memory_entries(user.id, 2) == []


def test_memory_entry_normalisation():
    user = accounts.create_user("Norm")

    entry = bartenders.add_memory_entry(
        user.id, 1, "Hates goblins", type=MemoryType.PREFERENCE, importance=9, context="negative"
    )
    assert entry["importance"] == 3
    assert entry["type"] == "preference"
    assert entry["context"] == "negative"


def test_memories_capped(monkeypatch):
    monkeypatch.setenv("MAX_MEMORY_ENTRIES", "3")
    from pixel_tavern.config import reload_settings
    reload_settings()

    try:
        user = accounts.create_user("Chatty")
        base = datetime.now(timezone.utc)
        for i in range(5):
            bartenders.add_memory_entry(user.id, 1, f"memory {i}", timestamp=base + timedelta(seconds=i))

        entries = bartenders.get_memory_entries(user.id, 1, limit=10)
        assert [e["content"] for e in entries] == ["memory 4", "memory 3", "memory 2"]
    finally:
        monkeypatch.delenv("MAX_MEMORY_ENTRIES")
        reload_settings()


def test_summarized_memories():
    user = accounts.create_user("Summary")
    assert bartenders.get_summarized_memories(user.id, 1) == NO_MEMORIES_SUMMARY

    bartenders.add_memory_entry(
        user.id, 1, "Loves Dwarven Mead",
        type=MemoryType.PREFERENCE,
        importance=4,
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )
    assert bartenders.get_summarized_memories(user.id, 1) == (
        "[2024-05-01, type: preference, importance: 4] Loves Dwarven Mead"
    )


# === Inventory ===

def _item_id(name: str) -> int:
    return next(item.id for item in inventory.get_items() if item.name == name)


def test_item_catalogue():
    items = inventory.get_items()
    assert len(items) == 17

    potion = inventory.get_item(_item_id("Health Potion"))
    assert potion.stackable is True
    assert potion.max_stack == 10


def test_stackable_items_stack_up_to_max():
    user = accounts.create_user("Hoarder")
    potion = _item_id("Health Potion")

    inventory.add_item_to_inventory(user.id, potion, 4)
    entry = inventory.add_item_to_inventory(user.id, potion, 9)

    assert entry.quantity == 10
    assert entry.item.name == "Health Potion"
    assert len(inventory.get_user_inventory(user.id)) == 1


def test_non_stackable_items_stay_single():
    user = accounts.create_user("Swordsman")
    sword = _item_id("Rusty Sword")

    inventory.add_item_to_inventory(user.id, sword, 3)
    entry = inventory.add_item_to_inventory(user.id, sword)
    assert entry.quantity == 1


def test_add_item_errors():
    user = accounts.create_user("Picky")

    with pytest.raises(NotFoundError, match="Item not found"):
        inventory.add_item_to_inventory(user.id, 9999)
    with pytest.raises(NotFoundError, match="User not found"):
        inventory.add_item_to_inventory(9999, 1)
    with pytest.raises(TavernValidationError):
        inventory.add_item_to_inventory(user.id, 1, 0)


def test_remove_item():
    user = accounts.create_user("Drinker")
    potion = _item_id("Mana Potion")
    inventory.add_item_to_inventory(user.id, potion, 5)

    assert inventory.remove_item_from_inventory(user.id, potion, 2) is True
    assert inventory.get_user_inventory_item(user.id, potion).quantity == 3
    assert inventory.has_item(user.id, potion, 3)
    assert not inventory.has_item(user.id, potion, 4)

    assert inventory.remove_item_from_inventory(user.id, potion, 3) is True
    assert inventory.get_user_inventory_item(user.id, potion) is None
    assert inventory.remove_item_from_inventory(user.id, potion) is False


def test_equip_replaces_slot_occupant():
    user = accounts.create_user("Knight")
    sword = _item_id("Rusty Sword")
    staff = _item_id("Wizard's Staff")
    inventory.add_item_to_inventory(user.id, sword)
    inventory.add_item_to_inventory(user.id, staff)

    assert inventory.equip_item(user.id, sword, "mainHand").equip_slot == "mainHand"
    inventory.equip_item(user.id, staff, "mainHand")

    equipped = inventory.get_equipped_items(user.id)
    assert [(e.item_id, e.equip_slot) for e in equipped] == [(staff, "mainHand")]


def test_equip_errors():
    user = accounts.create_user("Clumsy")
    sword = _item_id("Rusty Sword")

    assert inventory.equip_item(user.id, sword, "mainHand") is None
    with pytest.raises(TavernValidationError, match="Invalid equipment slot"):
        inventory.equip_item(user.id, sword, "tail")


def test_unequip():
    user = accounts.create_user("Tidy")
    ring = _item_id("Adventurer's Ring")
    inventory.add_item_to_inventory(user.id, ring)

    assert inventory.unequip_item(user.id, ring) is None

    inventory.equip_item(user.id, ring, "ring1")
    entry = inventory.unequip_item(user.id, ring)
    assert entry.equipped is False
    assert entry.equip_slot is None
    assert inventory.get_equipped_items(user.id) == []


def test_transfer_item():
    giver = accounts.create_user("Giver")
    taker = accounts.create_user("Taker")
    potion = _item_id("Health Potion")
    inventory.add_item_to_inventory(giver.id, potion, 3)

    assert inventory.transfer_item(giver.id, taker.id, potion, 5) is False
    assert inventory.transfer_item(giver.id, taker.id, potion, 2) is True

    assert inventory.get_user_inventory_item(giver.id, potion).quantity == 1
    assert inventory.get_user_inventory_item(taker.id, potion).quantity == 2


def test_craft_item():
    user = accounts.create_user("Alchemist")
    health = _item_id("Health Potion")
    mana = _item_id("Mana Potion")
    elixir = _item_id("Strength Elixir")
    inventory.add_item_to_inventory(user.id, health, 2)
    inventory.add_item_to_inventory(user.id, mana, 1)

    materials = [{"item_id": health, "quantity": 2}, {"item_id": mana, "quantity": 1}]
    crafted = inventory.craft_item(user.id, elixir, materials)

    assert crafted.name == "Strength Elixir"
    assert inventory.get_user_inventory_item(user.id, health) is None
    assert inventory.get_user_inventory_item(user.id, mana) is None
    assert inventory.get_user_inventory_item(user.id, elixir).quantity == 1


def test_craft_item_missing_materials_consumes_nothing():
    user = accounts.create_user("Apprentice")
    health = _item_id("Health Potion")
    inventory.add_item_to_inventory(user.id, health, 1)

    crafted = inventory.craft_item(user.id, _item_id("Strength Elixir"), [{"item_id": health, "quantity": 2}])

    assert crafted is None
    assert inventory.get_user_inventory_item(user.id, health).quantity == 1


# === Direct creation ===

def test_create_bartender_and_menu_item():
    bartender = bartenders.create_bartender("Opal", "opal", "opal", "Quiet and watchful.")
    assert bartender.level == 1
    assert bartenders.get_bartender_by_name("OPAL").id == bartender.id

    item = bartenders.create_menu_item("Opal Tonic", "Fizzy.", 9, "drinks", "opalTonic")
    assert item.id is not None
    assert "Opal Tonic" in {m.name for m in bartenders.get_menu_items("drinks")}


def test_create_mood_and_memory_records():
    user = accounts.create_user("Fresh")

    record = bartenders.create_bartender_mood(user.id, 2, 140)
    assert record.mood == 100
    assert bartenders.get_bartender_mood(user.id, 2).mood == 100

    memory = bartenders.create_bartender_memory(user.id, 2, [
        {"content": "kept", "type": "event", "importance": 2},
        {"content": "dropped", "type": "gossip"},
    ])
    assert memory.id is not None
    assert [e["content"] for e in bartenders.get_memory_entries(user.id, 2)] == ["kept"]


def test_create_item():
    item = inventory.create_item(
        "Ember Shard", "Warm to the touch.", "material",
        rarity="rare", value=40, stackable=True, max_stack=20, stats={"fire": 3},
    )
    fetched = inventory.get_item(item.id)
    assert fetched.max_stack == 20

    user = accounts.create_user("Collector")
    entry = inventory.add_item_to_inventory(user.id, item.id, 25)
    assert entry.quantity == 20
    assert entry.item.stats == {"fire": 3}
