"""
Keyword sentiment scoring and mood presentation for bartenders.

A chat line's score (-10..10) nudges the resident bartender's mood toward
the speaker; the mood (0..100) then colours what the bartender says.
"""
import random
from typing import Optional


VERY_POSITIVE_TERMS = [
    "amazing", "fantastic", "excellent", "wonderful", "brilliant", "love",
    "beautiful", "perfect", "best", "favorite", "incredible",
    "thank you so much", "you're the best", "love this place",
    "marry me", "gorgeous", "stunning", "extraordinary",
]

POSITIVE_TERMS = [
    "good", "nice", "great", "cool", "awesome", "thanks", "appreciate",
    "happy", "enjoy", "pleased", "glad", "helpful", "kind", "sweet",
    "fun", "like", "pretty", "attractive", "delicious", "tasty",
]

# Conversation openers: a small bump for engaging at all
NEUTRAL_TERMS = [
    "hello", "hi", "hey", "how are you", "what's up", "greetings",
    "good morning", "good afternoon", "good evening", "how's it going",
    "what do you recommend", "tell me about", "may i have", "please",
]

NEGATIVE_TERMS = [
    "bad", "poor", "terrible", "awful", "horrible", "dislike", "hate",
    "slow", "rude", "disappointing", "overpriced", "mediocre", "boring",
    "not good", "waste", "unhappy", "annoying", "lousy",
]

VERY_NEGATIVE_TERMS = [
    "worst", "disgusting", "pathetic", "terrible", "awful", "scam",
    "ripoff", "fraud", "fuck", "shit", "stupid", "idiot", "useless",
    "worthless", "never coming back", "garbage", "trash", "hate",
]

TERM_WEIGHTS = (
    (VERY_POSITIVE_TERMS, 5),
    (POSITIVE_TERMS, 2),
    (NEUTRAL_TERMS, 1),
    (NEGATIVE_TERMS, -2),
    (VERY_NEGATIVE_TERMS, -5),
)

MIN_SCORE = -10
MAX_SCORE = 10


def analyze_sentiment(message: str) -> int:
    """
    Score a chat line from -10 (hostile) to +10 (adoring).

    Every listed term found anywhere in the lowercased message counts once
    toward its tier's weight. Matching is by substring, so "hi" also fires
    inside "this"; the tiers are tuned with that in mind.
    """
    lower = message.lower()
    score = 0
    for terms, weight in TERM_WEIGHTS:
        for term in terms:
            if term in lower:
                score += weight
    return max(MIN_SCORE, min(MAX_SCORE, score))


# (threshold, description) from warmest to coldest
MOOD_BANDS = [
    (90, "absolutely adores you"),
    (80, "is very fond of you"),
    (70, "clearly likes you"),
    (60, "seems to like you"),
    (50, "is friendly toward you"),
    (40, "is somewhat cool toward you"),
    (30, "seems annoyed with you"),
    (20, "is clearly irritated by you"),
    (10, "strongly dislikes you"),
]


def get_mood_description(mood: int) -> str:
    for threshold, description in MOOD_BANDS:
        if mood >= threshold:
            return description
    return "absolutely despises you"


def get_mood_icon(mood: int) -> str:
    if mood >= 80:
        return "♥"
    if mood >= 60:
        return "★"
    if mood >= 50:
        return "●"
    if mood >= 40:
        return "◆"
    if mood >= 20:
        return "▲"
    return "✖"


COLD_MOOD_THRESHOLD = 20
WARM_MOOD_THRESHOLD = 80

NEGATIVE_ADDITIONS = {
    "Sapphire": [
        " *rolls her eyes* Whatever.",
        " *mutters* And I thought the depths were cold...",
        " *sharp tone* There. Happy now?",
        " *turns away* That's all you're getting from me.",
        " *glares* Hmph. Normies like you are why I prefer the abyss.",
    ],
    "Amethyst": [
        " *forced smile* Is there anything ELSE you need?",
        " *turns away dramatically* Hmph!",
        " *smile fades* ...not that you'd appreciate it anyway.",
        " *straightens her apron* Is that all?",
        " *whispers to a fairy figurine* Can you believe this person?",
    ],
    "Ruby": [
        " *checks watch* Is this conversation efficiently concluding soon?",
        " *writes something in her ledger* Customer satisfaction: not a priority in this instance.",
        " *coldly* Will that be all?",
        " *adjusts glasses* I have more productive uses of my time.",
        " *calculating tone* The probability of this exchange improving is approximately 2.7%.",
    ],
}

POSITIVE_ADDITIONS = {
    "Sapphire": [
        " *her tattoos glow warmly* You're... different from the others. In a good way.",
        " *smiles genuinely* The tides bring good things when you're around.",
        " *leans in* You know, I don't say this to many surface-dwellers, but you're alright.",
        " *her eyes sparkle* The depths speak well of you.",
        " *touches your hand briefly* The currents around you feel... right.",
    ],
    "Amethyst": [
        " *sparkles appear around her* You're absolutely my FAVORITE customer ever~!",
        " *twirls happily* Talking with you makes my whole day brighter!",
        " *clasps hands together* I just KNEW we were destined to be great friends!",
        " *winks playfully* You know, you're special... I can tell!",
        " *blows a magical kiss* You're simply the BEST~!",
    ],
    "Ruby": [
        " *small genuine smile* Your presence here is... statistically beneficial to my day.",
        " *adjusts a strand of hair* I've allocated 22% more time for our conversations. That's significant.",
        " *efficient nod* Your insights are consistently valuable. That's rare.",
        " *writes in her ledger* Customer satisfaction priority: exceptionally high.",
        " *meets your eyes briefly* I find our exchanges unusually satisfactory.",
    ],
}


def adjust_response_based_on_mood(
    response: str,
    mood: int,
    bartender_name: str,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Append a cold (mood <= 20) or warm (mood >= 80) aside to a reply.

    Order acknowledgements and bartenders without asides are left alone.
    """
    if "/order" in response:
        return response

    rng = rng or random
    if mood <= COLD_MOOD_THRESHOLD:
        additions = NEGATIVE_ADDITIONS.get(bartender_name)
    elif mood >= WARM_MOOD_THRESHOLD:
        additions = POSITIVE_ADDITIONS.get(bartender_name)
    else:
        additions = None

    if not additions:
        return response
    return response + rng.choice(additions)
