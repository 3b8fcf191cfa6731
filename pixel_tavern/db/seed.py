"""
Default tavern content: the three bartender sisters, their rooms, the menu
and the starting item catalogue.

Both loaders are idempotent: they do nothing when the target table already
has rows.
"""
import json

from sqlmodel import Session, select

from pixel_tavern.db.models import Bartender, Room, MenuItem, Item


DEFAULT_BARTENDERS = [
    {
        "name": "Amethyst",
        "sprite": "amethyst",
        "avatar": "amethyst",
        "personality": "The pink-haired sister on the left. Sweet and charming, "
                       "always ready with a kind word.",
    },
    {
        "name": "Sapphire",
        "sprite": "sapphire",
        "avatar": "sapphire",
        "personality": "The blue-haired sister in the middle. Intelligent and witty, "
                       "great at solving problems.",
    },
    {
        "name": "Ruby",
        "sprite": "ruby",
        "avatar": "ruby",
        "personality": "The red-haired sister on the right. Fiery and passionate, "
                       "tells amazing stories about adventures.",
    },
]

# (room name, description, resident bartender)
DEFAULT_ROOMS = [
    ("The Rose Garden", "A warm and inviting space with Amethyst's sweet service.", "Amethyst"),
    ("The Ocean View", "A thoughtful atmosphere where Sapphire offers clever insights.", "Sapphire"),
    ("The Dragon's Den", "An exciting corner where Ruby shares thrilling tales.", "Ruby"),
]

DEFAULT_MENU = [
    # Drinks
    ("Dragon's Breath Ale", "Strong ale with a fiery kick that'll warm your bones", 5, "drinks", "dragonAle"),
    ("Elven Moonshine", "Delicate spirits distilled under a full moon", 12, "drinks", "elvenMoonshine"),
    ("Dwarven Mead", "Sweet honey mead from the mountain halls", 8, "drinks", "dwarvenMead"),
    ("Wizard's Brew", "Glowing blue concoction with mysterious effects", 15, "drinks", "wizardBrew"),
    # Food
    ("Hearty Stew", "Thick and filling stew with chunks of meat and vegetables", 10, "food", "heartyStew"),
    ("Roasted Pheasant", "Whole bird roasted with herbs and served with potatoes", 18, "food", "roastedPheasant"),
    ("Elven Bread", "Light and filling bread that stays fresh for days", 6, "food", "elvenBread"),
    ("Cheese Platter", "Assortment of fine cheeses from across the realm", 15, "food", "cheesePlatter"),
    # Specials
    ("Hero's Feast", "Legendary meal that grants vigor and strength", 30, "specials", "herosFeast"),
    ("Fairy Wine", "Shimmering wine that makes you feel light as air", 25, "specials", "fairyWine"),
    ("Goblin Surprise", "You never know what you'll get, but it's always interesting", 8, "specials", "goblinSurprise"),
    ("Midnight Whiskey", "Dark as night with hints of smoke and mystery", 20, "specials", "midnightWhiskey"),
]

INITIAL_ITEMS = [
    # Weapons
    {
        "name": "Rusty Sword",
        "description": "A basic sword with some rust on the blade. Better than nothing.",
        "type": "weapon", "rarity": "common", "value": 10, "weight": 5,
        "icon": "weapon_sword",
        "stats": {"damage": 3, "requirements": {"level": 1}},
    },
    {
        "name": "Hunter's Bow",
        "description": "A simple wooden bow used for hunting small game.",
        "type": "weapon", "rarity": "common", "value": 20, "weight": 3,
        "icon": "weapon_bow",
        "stats": {"damage": 4, "requirements": {"level": 1, "dexterity": 2}},
    },
    {
        "name": "Fine Steel Dagger",
        "description": "A well-balanced dagger with a sharp edge.",
        "type": "weapon", "rarity": "uncommon", "value": 35, "weight": 2,
        "icon": "weapon_dagger",
        "stats": {"damage": 5, "requirements": {"level": 2}},
    },
    {
        "name": "Wizard's Staff",
        "description": "A wooden staff topped with a glowing crystal.",
        "type": "weapon", "rarity": "uncommon", "value": 60, "weight": 4,
        "icon": "weapon_staff",
        "stats": {"damage": 6, "requirements": {"level": 3, "intelligence": 5}},
    },
    # Armor
    {
        "name": "Leather Vest",
        "description": "Simple leather protection for your torso.",
        "type": "armor", "rarity": "common", "value": 15, "weight": 4,
        "icon": "armor_chest",
        "stats": {"defense": 2, "requirements": {"level": 1}},
    },
    {
        "name": "Sturdy Boots",
        "description": "Durable boots for long journeys.",
        "type": "armor", "rarity": "common", "value": 8, "weight": 2,
        "icon": "armor_feet",
        "stats": {"defense": 1, "requirements": {"level": 1}},
    },
    {
        "name": "Reinforced Helmet",
        "description": "A metal helmet with good protection.",
        "type": "armor", "rarity": "uncommon", "value": 30, "weight": 3,
        "icon": "armor_head",
        "stats": {"defense": 3, "requirements": {"level": 2}},
    },
    {
        "name": "Enchanted Gloves",
        "description": "Gloves with minor magical enhancements.",
        "type": "armor", "rarity": "rare", "value": 45, "weight": 1,
        "icon": "armor_hands",
        "stats": {"defense": 2, "intelligence": 1, "requirements": {"level": 3}},
    },
    # Consumables
    {
        "name": "Health Potion",
        "description": "Restores 20 health points when consumed.",
        "type": "consumable", "rarity": "common", "value": 5, "weight": 1,
        "stackable": True, "max_stack": 10, "icon": "potion_red",
        "stats": {"effects": ["heal_20"]},
    },
    {
        "name": "Mana Potion",
        "description": "Restores 20 mana points when consumed.",
        "type": "consumable", "rarity": "common", "value": 5, "weight": 1,
        "stackable": True, "max_stack": 10, "icon": "potion_blue",
        "stats": {"effects": ["mana_20"]},
    },
    {
        "name": "Antidote",
        "description": "Cures poison status effects.",
        "type": "consumable", "rarity": "uncommon", "value": 15, "weight": 1,
        "stackable": True, "max_stack": 5, "icon": "potion_green",
        "stats": {"effects": ["cure_poison"]},
    },
    {
        "name": "Strength Elixir",
        "description": "Temporarily increases strength for 5 minutes.",
        "type": "consumable", "rarity": "rare", "value": 50, "weight": 1,
        "stackable": True, "max_stack": 3, "icon": "potion_orange",
        "stats": {"effects": ["strength_boost_5"]},
    },
    # Accessories
    {
        "name": "Lucky Charm",
        "description": "A small trinket that brings good fortune.",
        "type": "accessory", "rarity": "uncommon", "value": 25, "weight": 1,
        "icon": "accessory_trinket",
        "stats": {"effects": ["luck_boost"]},
    },
    {
        "name": "Adventurer's Ring",
        "description": "A simple ring worn by many adventurers.",
        "type": "accessory", "rarity": "common", "value": 20, "weight": 1,
        "icon": "accessory_ring",
        "stats": {"health": 5},
    },
    {
        "name": "Amulet of Protection",
        "description": "Provides magical protection to the wearer.",
        "type": "accessory", "rarity": "rare", "value": 75, "weight": 1,
        "icon": "accessory_amulet",
        "stats": {"defense": 3, "effects": ["magic_resist"]},
    },
    # Quest items have no sell value
    {
        "name": "Mysterious Key",
        "description": "A strange key of unknown origin. Might open something important.",
        "type": "quest", "rarity": "uncommon", "value": 0, "weight": 1,
        "icon": "quest_key",
        "stats": {},
    },
    {
        "name": "Sealed Letter",
        "description": "A letter sealed with wax bearing an unknown insignia.",
        "type": "quest", "rarity": "common", "value": 0, "weight": 1,
        "icon": "quest_letter",
        "stats": {},
    },
]


def seed_tavern(session: Session) -> dict[str, int]:
    """
    Insert bartenders, rooms and menu when no bartender exists yet.

    Returns:
        Counts of inserted rows (all zero when already seeded)
    """
    if session.exec(select(Bartender)).first() is not None:
        return {"bartenders": 0, "rooms": 0, "menu_items": 0}

    bartenders = {}
    for data in DEFAULT_BARTENDERS:
        bartender = Bartender(**data)
        session.add(bartender)
        bartenders[data["name"]] = bartender
    session.flush()

    for name, description, bartender_name in DEFAULT_ROOMS:
        session.add(Room(
            name=name,
            description=description,
            bartender_id=bartenders[bartender_name].id,
        ))

    for name, description, price, category, icon in DEFAULT_MENU:
        session.add(MenuItem(
            name=name,
            description=description,
            price=price,
            category=category,
            icon=icon,
        ))

    session.commit()
    return {
        "bartenders": len(DEFAULT_BARTENDERS),
        "rooms": len(DEFAULT_ROOMS),
        "menu_items": len(DEFAULT_MENU),
    }


def seed_items(session: Session) -> int:
    """Insert the starting item catalogue when the items table is empty."""
    if session.exec(select(Item)).first() is not None:
        return 0

    for data in INITIAL_ITEMS:
        fields = dict(data)
        fields["stats"] = json.dumps(fields.get("stats", {}))
        session.add(Item(**fields))

    session.commit()
    return len(INITIAL_ITEMS)
