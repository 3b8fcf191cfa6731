"""
What bartenders say.

Replies come from an OpenRouter chat completion when OPENROUTER_API_KEY is
set, and from each sister's canned lines otherwise (or when the API call
fails). Either way the result is then flavoured by the bartender's mood.
"""
import random
import re
from typing import Optional

from pixel_tavern.config import get_settings
from pixel_tavern.deps import get_openai_client, chat_completion_with_retry
from pixel_tavern.services.sentiment import adjust_response_based_on_mood, get_mood_description


ORDER_PREFIX = "/order"
MENU_COMMAND = "/menu"

BARTENDER_BIOS = {
    "Sapphire": {
        "bio": "Sapphire is a calm, wise sea-touched woman with azure skin and flowing blue hair. "
               "Born in a coastal village, she's deeply connected to the ocean and its mysteries. "
               "Her voice has a gentle, rhythmic quality like waves on the shore. She's intuitive, "
               "observant, and has an almost supernatural ability to read people's intentions. "
               "Sapphire collects tales from seafarers and treasures from shipwrecks, displaying "
               "some in The Ocean View room. While typically serene, she becomes stern when "
               "patrons disrespect her space or others.",
        "traits": ["wise", "calm", "mysterious", "observant", "protective"],
    },
    "Amethyst": {
        "bio": "Amethyst is a vibrant, passionate woman with striking pink hair and a collection "
               "of arcane tattoos. A former battle-mage, she now channels her energy into brewing "
               "potent concoctions and maintaining order in The Rose Garden. Her laugh is "
               "infectious but her temper legendary. The rose garden connected to her tavern room "
               "blooms at midnight with magical flowers that glow and sometimes whisper secrets. "
               "She's direct, sometimes abrasive, but fiercely loyal to regular patrons. Her "
               "powerful arms bear scars from adventures she rarely discusses fully.",
        "traits": ["passionate", "strong", "direct", "magical", "protective"],
    },
    "Ruby": {
        "bio": "Ruby is a shrewd, attentive woman with auburn hair and a network of information "
               "that rivals any royal spy. The Dragon's Den is her domain, where she serves drinks "
               "while collecting secrets. Raised in a merchant family, she has a head for business "
               "and an eye for detail. More soft-spoken than her sisters, Ruby notices everything "
               "and forgets nothing. She maintains a warm demeanor but keeps most at arm's length. "
               "Her specialty is connecting people who need each other's services, making her an "
               "invaluable ally for those she trusts.",
        "traits": ["perceptive", "intelligent", "strategic", "reserved", "detail-oriented"],
    },
}

GREETINGS = {
    "Sapphire": [
        "*Her blue eyes shimmer like the ocean as she turns to you* Welcome to The Ocean View. "
        "I'm Sapphire. The waters brought you to us for a reason, perhaps. What can I pour for you today?",
        "*Looks up from polishing a shell-encrusted goblet* Ah, a new face washed in by the tide. "
        "I'm Sapphire, keeper of The Ocean View. What brings you to our peaceful waters?",
        "*Her movements fluid like water as she approaches* Welcome, traveler. I'm Sapphire. "
        "The Ocean View offers respite for weary souls. What refreshment do you seek?",
    ],
    "Amethyst": [
        "*Her arcane tattoos briefly glow as she notices you* Ha! Fresh blood! Welcome to The Rose "
        "Garden. I'm Amethyst, and my drinks pack a punch stronger than I do - and that's saying "
        "something! What'll it be?",
        "*Slams down a mug with surprising force* New face! About time! I'm Amethyst, and this is "
        "The Rose Garden - best drinks in the realm if you can handle them. What's your poison?",
        "*Eyes you with an appraising look* Well now, you look interesting. I'm Amethyst, mistress "
        "of The Rose Garden and former battle-mage. Let's see if your taste in drinks matches your aura!",
    ],
    "Ruby": [
        "*Glances up with perceptive eyes that seem to memorize your features* Welcome to The "
        "Dragon's Den. I'm Ruby. *She speaks softly but clearly* I notice you've traveled far. "
        "Perhaps a drink to restore your spirits?",
        "*Making a subtle note in a small book before addressing you* The Dragon's Den welcomes "
        "you. I'm Ruby, purveyor of fine drinks and... information. What can I offer you today?",
        "*Her movements precise and measured as she arranges bottles* A new patron for The "
        "Dragon's Den. How intriguing. I'm Ruby. *She offers a small smile* Your timing is "
        "impeccable. What shall I prepare for you?",
    ],
}

ORDER_LINES = {
    "Sapphire": [
        "One {item} coming right up! The ocean's bounty provides many gifts, this being one of my favorites.",
        "Ah, {item}! A fine choice. This reminds me of something sailors from the eastern isles would enjoy.",
        "I'll prepare your {item} with care. The secret is in how the ingredients flow together, like tides.",
    ],
    "Amethyst": [
        "One {item} coming right up! Strong enough to put hair on a dwarf's chest, just how I like to make 'em!",
        "{item}? Excellent choice! I add a special kick to mine that'll warm you from the inside out.",
        "Your {item} will be ready in a flash! My special blend might make your eyes water, "
        "but that's how you know it's good!",
    ],
    "Ruby": [
        "One {item} coming right up! I've perfected this recipe through careful observation of "
        "what my patrons enjoy most.",
        "{item} is an excellent choice. I recently refined the preparation after speaking with a "
        "merchant from the southern realms.",
        "I'll have your {item} ready momentarily. Each ingredient measured precisely - details "
        "matter in good service.",
    ],
}

CHATTER = {
    "Sapphire": [
        "The ocean has secrets, stranger. Some worth knowing, some better left alone.",
        "My drinks taste like the sea, cool and refreshing. Care to try the Blue Depths ale?",
        "Been traveling far? The Ocean View welcomes all weary souls seeking peaceful waters.",
        "Watch the patrons carefully. You might learn more from their silences than from my words.",
        "The waves bring all sorts to our shore. Stay a while, why don't you?",
        "These blue markings on my skin? Ancient magic from the deep. A story for another time, perhaps.",
        "Keep your coin purse close. Not all here are honest folk, though the waters reveal all "
        "truths eventually.",
        "My sisters and I keep this place running. Each room has its own... atmosphere, like "
        "currents in the sea.",
        "The tides shift and change, much like the fortunes of those who visit us.",
        "I can tell by your eyes you've seen the open water. There's always a sailor's look that never fades.",
        "Some say the ocean speaks to me. Perhaps... but I don't share all its whispers.",
        "This blue ale? It contains a single mermaid's tear, collected with permission during the "
        "full moon. Brings clarity of thought.",
    ],
    "Amethyst": [
        "Have you tried our special brew? It's got a real kick to it - cleared a troll's sinuses once!",
        "The Rose Garden is my pride and joy. The flowers only bloom at midnight when my magic is strongest.",
        "Some say I mix the strongest drinks in the realm. They'd be right - I don't do anything half-measure.",
        "Looking for work? The guild always needs brave souls... or expendable ones. I can spot which you are.",
        "My tattoos? Each tells a story of triumph... or warning. This one here? From the Battle "
        "of Crimson Vale.",
        "Stay for the music later. The bard knows tales that'll chill your blood - I made sure of it.",
        "That weapon you carry has seen blood, hasn't it? It remembers every life it's taken. I can sense it.",
        "These scars? From when I was in the mage battalion. The northern campaign was brutal but necessary.",
        "Another battle-mage passed through recently. I can always spot them by their stance and "
        "how they carry their scars.",
        "The roses outside? Don't try picking them after dark. They have... defensive enchantments "
        "I personally placed.",
        "I once punched a troll unconscious. That's how I got this tavern, believe it or not. "
        "Previous owner lost a bet.",
        "You look like you could use something that burns going down. I've got just the thing - "
        "melts steel but goes down smooth.",
    ],
    "Ruby": [
        "Take your time. Good drinks, like good advice, shouldn't be rushed. Observation leads to quality.",
        "If you're seeking information, you'd be wise to speak with the merchants by the east "
        "gate. Tell them Ruby sent you.",
        "The guild is recruiting skilled hands. I could put in a good word, if I judge your "
        "talents worth recommending.",
        "Mind your coin purse. Not everyone in here is as honest as they appear. Table by the "
        "window - especially watch him.",
        "My sisters are excellent company, but I notice what others miss. It's the quiet details "
        "that tell the full story.",
        "Need a quiet place to rest? The rooms upstairs are well-kept and private. Third door has "
        "the finest view.",
        "That injury looks fresh. We have healing potions if you require one - specially imported "
        "from the elvish valleys.",
        "The trouble up north has brought many refugees to our doors lately. Listen to their "
        "stories - there's profit in knowing.",
        "I've heard whispers of a new trading route opening beyond the mountains. Profitable, if dangerous.",
        "The quiet ones are always worth watching. They collect information without even trying, "
        "much like myself.",
        "Three separate patrons mentioned the same dream last night. Coincidence? I think not. "
        "I record such patterns.",
        "Your accent... northeastern provinces? Your secret's safe, but you might want to work on "
        "that if discretion matters.",
    ],
}

DEFAULT_GREETING = "Greetings, traveler! I'm {name}, what can I get for ya today?"
DEFAULT_ORDER_LINE = "One {item} coming right up! Anything else I can get ya?"
DEFAULT_CHATTER = "Welcome to the tavern! How can I help you today?"

RECOLLECTION_OPENERS = [
    "*Her eyes light up with recognition* Ah, {username}! I remember you. {memory}",
    "*Pauses mid-pour* {username}, isn't it? Last time: {memory}",
    "*Nods knowingly* Back again, {username}? I haven't forgotten. {memory}",
]

MENTION_PATTERN = re.compile(
    r"@(" + "|".join(BARTENDER_BIOS) + r")\b",
    re.IGNORECASE,
)


# === Commands & Mentions ===

def is_order_command(content: str) -> bool:
    return content.startswith(ORDER_PREFIX)


def is_menu_command(content: str) -> bool:
    return content.startswith(MENU_COMMAND)


def parse_order(content: str) -> str:
    """'/order Dwarven Mead' -> 'Dwarven Mead'"""
    return content[len(ORDER_PREFIX):].strip()


def check_for_bartender_mention(content: str) -> Optional[str]:
    """
    Find an @Sapphire / @Amethyst / @Ruby mention.

    Returns:
        The bartender name with canonical capitalisation, or None
    """
    match = MENTION_PATTERN.search(content)
    if not match:
        return None
    return match.group(1).capitalize()


def extract_query_from_mention(content: str, bartender_name: str) -> str:
    """Strip the first @mention of bartender_name from a message."""
    pattern = re.compile(r"@" + re.escape(bartender_name) + r"\b", re.IGNORECASE)
    return pattern.sub("", content, count=1).strip()


# === Canned Lines ===

def greeting_for(bartender_name: str, rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    lines = GREETINGS.get(bartender_name)
    if not lines:
        return DEFAULT_GREETING.format(name=bartender_name)
    return rng.choice(lines)


def order_line_for(bartender_name: str, item: str, rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    lines = ORDER_LINES.get(bartender_name) or [DEFAULT_ORDER_LINE]
    return rng.choice(lines).format(item=item)


def chatter_for(bartender_name: str, rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    lines = CHATTER.get(bartender_name)
    if not lines:
        return DEFAULT_CHATTER
    return rng.choice(lines)


def recollection_for(username: str, memory: str, rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    return rng.choice(RECOLLECTION_OPENERS).format(username=username, memory=memory)


def serve_line(bartender_name: str, item: str) -> str:
    return f"{bartender_name} slides a fresh {item} across the counter to you."


# === OpenRouter Prompting ===

def build_prompt(
    bartender_name: str,
    message: str,
    username: str,
    *,
    mood: Optional[int] = None,
    memory_summary: Optional[str] = None,
) -> Optional[str]:
    """
    System prompt for one bartender reply.

    Returns:
        None for bartenders without a bio
    """
    info = BARTENDER_BIOS.get(bartender_name)
    if info is None:
        return None

    traits = ", ".join(info["traits"])

    if is_order_command(message):
        prompt = (
            f"You are {bartender_name}, {info['bio']}\n\n"
            f"A patron named {username} has ordered {parse_order(message)}. "
            f"Respond in character as {bartender_name} acknowledging their order.\n"
            "Be descriptive about making the drink or preparing the food item.\n"
            "Keep your response concise (1-3 sentences).\n"
            f"Your personality is: {traits}.\n"
            "Your response should reflect your unique personality and background."
        )
    else:
        prompt = (
            f"You are {bartender_name}, {info['bio']}\n\n"
            "You're currently working at your tavern, serving customers and engaging in casual conversation.\n"
            f"Your personality is: {traits}.\n\n"
            f"A patron named {username} said: \"{message}\"\n\n"
            f"Respond in character as {bartender_name}. Keep your response concise (1-3 sentences).\n"
            "Your response should reflect your unique personality and background.\n"
            "If you're asked a question you don't know the answer to, respond in a way that fits your character.\n"
            "Always stay in character as a fantasy tavern bartender in a medieval world with some magic elements."
        )

    if mood is not None:
        prompt += f"\n\nRight now {bartender_name} {get_mood_description(mood)}. Let that show."
    if memory_summary:
        prompt += f"\n\nWhat you remember about {username}:\n{memory_summary}"

    return prompt


async def get_openrouter_response(
    bartender_name: str,
    message: str,
    username: str = "Guest",
    *,
    mood: Optional[int] = None,
    memory_summary: Optional[str] = None,
) -> Optional[str]:
    """
    Ask OpenRouter for an in-character reply.

    Returns None if the API is not configured, the bartender has no bio,
    or the request fails after retries.
    """
    client = get_openai_client()
    if client is None:
        return None

    prompt = build_prompt(bartender_name, message, username, mood=mood, memory_summary=memory_summary)
    if prompt is None:
        return None

    settings = get_settings()
    try:
        return await chat_completion_with_retry(
            client,
            [
                {"role": "system", "content": prompt},
                {"role": "user", "content": message},
            ],
            model=settings.OPENROUTER_MODEL,
            temperature=0.7,
            max_tokens=150,
        )
    except Exception as e:
        print(f"OpenRouter error: {e}")
        return None


async def generate_reply(
    bartender_name: str,
    message: str,
    username: str = "Guest",
    *,
    mood: int = 50,
    memory_summary: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Bartender reply to a chat line or an '/order <item>' command.

    Tries OpenRouter first, then falls back to canned lines, and finally
    applies the mood aside.
    """
    reply = await get_openrouter_response(
        bartender_name,
        message,
        username,
        mood=mood,
        memory_summary=memory_summary,
    )

    if reply is None:
        if is_order_command(message):
            reply = order_line_for(bartender_name, parse_order(message), rng)
        else:
            reply = chatter_for(bartender_name, rng)

    return adjust_response_based_on_mood(reply, mood, bartender_name, rng)
