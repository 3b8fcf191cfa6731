"""
Tests for sentiment scoring, mood flavouring and bartender dialogue.
"""
import random

import pytest

from pixel_tavern.protocol import MemoryType
from pixel_tavern.services import dialogue
from pixel_tavern.services.chat import memory_from_message
from pixel_tavern.services.sentiment import (
    NEGATIVE_ADDITIONS,
    POSITIVE_ADDITIONS,
    adjust_response_based_on_mood,
    analyze_sentiment,
    get_mood_description,
    get_mood_icon,
)


# === Sentiment ===

def test_sentiment_signs():
    assert analyze_sentiment("This ale is delicious, thanks!") > 0
    assert analyze_sentiment("Worst, most disgusting swill. Useless.") < 0
    assert analyze_sentiment("The weather turned.") == 0


def test_sentiment_is_clamped():
    gushing = "amazing fantastic excellent wonderful brilliant perfect best incredible"
    assert analyze_sentiment(gushing) == 10
    assert analyze_sentiment("worst disgusting pathetic scam fraud garbage trash") == -10


def test_mood_bands():
    assert get_mood_description(95) == "absolutely adores you"
    assert get_mood_description(50) == "is friendly toward you"
    assert get_mood_description(49) == "is somewhat cool toward you"
    assert get_mood_description(5) == "absolutely despises you"

    assert get_mood_icon(80) == "♥"
    assert get_mood_icon(50) == "●"
    assert get_mood_icon(0) == "✖"


def test_mood_adjustment():
    rng = random.Random(1)

    assert adjust_response_based_on_mood("Here you go.", 50, "Ruby", rng) == "Here you go."

    cold = adjust_response_based_on_mood("Here you go.", 10, "Ruby", rng)
    assert cold.startswith("Here you go.")
    assert cold[len("Here you go."):] in NEGATIVE_ADDITIONS["Ruby"]

    warm = adjust_response_based_on_mood("Here you go.", 90, "Sapphire", rng)
    assert warm[len("Here you go."):] in POSITIVE_ADDITIONS["Sapphire"]


def test_mood_adjustment_skips_orders_and_strangers():
    assert adjust_response_based_on_mood("/order Ale", 0, "Ruby") == "/order Ale"
    assert adjust_response_based_on_mood("Hi.", 0, "Grumbold") == "Hi."


# === Commands & mentions ===

def test_commands():
    assert dialogue.is_order_command("/order Dwarven Mead")
    assert not dialogue.is_order_command("order Dwarven Mead")
    assert dialogue.is_menu_command("/menu")
    assert dialogue.parse_order("/order   Dwarven Mead ") == "Dwarven Mead"


def test_mentions():
    assert dialogue.check_for_bartender_mention("hey @ruby, a word?") == "Ruby"
    assert dialogue.check_for_bartender_mention("@Sapphire what's new") == "Sapphire"
    assert dialogue.check_for_bartender_mention("ruby is busy") is None
    assert dialogue.check_for_bartender_mention("mail me @rubyx") is None

    assert dialogue.extract_query_from_mention("@Ruby what's good?", "Ruby") == "what's good?"


def test_canned_lines():
    rng = random.Random(3)

    assert dialogue.greeting_for("Ruby", rng) in dialogue.GREETINGS["Ruby"]
    assert dialogue.greeting_for("Grumbold") == dialogue.DEFAULT_GREETING.format(name="Grumbold")
    assert "Dwarven Mead" in dialogue.order_line_for("Amethyst", "Dwarven Mead", rng)
    assert dialogue.chatter_for("Nobody") == dialogue.DEFAULT_CHATTER
    assert dialogue.serve_line("Ruby", "Elven Bread") == "Ruby slides a fresh Elven Bread across the counter to you."

    recollection = dialogue.recollection_for("Aria", "Loves mead", rng)
    assert "Aria" in recollection and "Loves mead" in recollection


def test_build_prompt():
    prompt = dialogue.build_prompt(
        "Ruby", "hello", "Aria", mood=85, memory_summary="[2024-05-01, type: event, importance: 4] Tipped well"
    )
    assert "Ruby" in prompt
    assert "Aria" in prompt
    assert "Tipped well" in prompt

    assert dialogue.build_prompt("Grumbold", "hello", "Aria") is None


@pytest.mark.asyncio
async def test_generate_reply_without_ai():
    rng = random.Random(5)

    order = await dialogue.generate_reply("Sapphire", "/order Fairy Wine", "Aria", rng=rng)
    assert "Fairy Wine" in order

    chatter = await dialogue.generate_reply("Sapphire", "what's new?", "Aria", mood=50, rng=rng)
    assert chatter in dialogue.CHATTER["Sapphire"]


@pytest.mark.asyncio
async def test_generate_reply_uses_openrouter(monkeypatch):
    async def fake_response(*args, **kwargs):
        return "By the tides, hello."

    monkeypatch.setattr(dialogue, "get_openrouter_response", fake_response)

    reply = await dialogue.generate_reply("Sapphire", "hello", "Aria", mood=50)
    assert reply == "By the tides, hello."


# === Memory extraction ===

def test_memory_from_disclosure():
    memory = memory_from_message("My name is Aria and I'm from the coast", 0, 5)
    assert memory["type"] == MemoryType.PERSONAL
    assert memory["importance"] == 4
    assert "My name is Aria" in memory["content"]

    memory = memory_from_message("I really love dwarven mead", 5, 5)
    assert memory["type"] == MemoryType.PREFERENCE


def test_memory_from_strong_sentiment():
    memory = memory_from_message("You are amazing!", 6, 5)
    assert memory["type"] == MemoryType.EVENT
    assert memory["context"] == "positive"
    assert memory["importance"] == 4

    memory = memory_from_message("Garbage service", -10, 5)
    assert memory["context"] == "negative"
    assert memory["importance"] == 5

    assert memory_from_message("Nice weather", 2, 5) is None


def test_memory_quote_is_truncated():
    memory = memory_from_message("I like " + "x" * 500, 2, 5)
    assert len(memory["content"]) < 230


# === OpenRouter client ===

class _FakeCompletions:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def create(self, **kwargs):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        message = type("Message", (), {"content": outcome})()
        choice = type("Choice", (), {"message": message})()
        return type("Response", (), {"choices": [choice]})()


class _FakeClient:
    def __init__(self, outcomes):
        self.completions = _FakeCompletions(outcomes)
        self.chat = type("Chat", (), {"completions": self.completions})()


@pytest.fixture
def fast_retries(monkeypatch):
    from pixel_tavern.config import reload_settings

    monkeypatch.setenv("HTTP_RETRY_WAIT_MIN_SECONDS", "0")
    monkeypatch.setenv("HTTP_RETRY_WAIT_MAX_SECONDS", "0")
    reload_settings()
    yield
    monkeypatch.delenv("HTTP_RETRY_WAIT_MIN_SECONDS")
    monkeypatch.delenv("HTTP_RETRY_WAIT_MAX_SECONDS")
    reload_settings()


@pytest.mark.asyncio
async def test_chat_completion_retries(fast_retries):
    from pixel_tavern.deps import chat_completion_with_retry

    client = _FakeClient([RuntimeError("rate limited"), "  Aye, welcome.  "])
    reply = await chat_completion_with_retry(client, [{"role": "user", "content": "hi"}], model="test")

    assert reply == "Aye, welcome."
    assert client.completions.calls == 2


@pytest.mark.asyncio
async def test_chat_completion_gives_up(fast_retries):
    from pixel_tavern.deps import chat_completion_with_retry

    client = _FakeClient(["", "", ""])
    with pytest.raises(ValueError, match="Unexpected API response structure"):
        await chat_completion_with_retry(client, [], model="test")
    assert client.completions.calls == 3


def test_openai_client_follows_settings(monkeypatch):
    from pixel_tavern.config import reload_settings
    from pixel_tavern.deps import get_openai_client, reset_openai_client

    assert get_openai_client() is None

    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-test")
    reload_settings()
    reset_openai_client()
    try:
        client = get_openai_client()
        assert client is not None
        assert str(client.base_url).startswith("https://openrouter.ai/api/v1")
        assert get_openai_client() is client
    finally:
        monkeypatch.setenv("OPENROUTER_API_KEY", "")
        reload_settings()
        reset_openai_client()
