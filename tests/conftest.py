"""
Shared fixtures.

The environment is configured before pixel_tavern is imported so the cached
settings and engine point at a throwaway database with instant bartenders.
"""
import os
import random
import tempfile
from pathlib import Path

_TEST_DIR = tempfile.mkdtemp(prefix="pixel-tavern-tests-")

os.environ["DATABASE_URL"] = f"sqlite:///{Path(_TEST_DIR) / 'test.db'}"
os.environ["OPENROUTER_API_KEY"] = ""
os.environ["BARTENDER_REPLY_CHANCE"] = "0"
os.environ["CHAT_REPLY_MIN_DELAY_SECONDS"] = "0"
os.environ["CHAT_REPLY_MAX_DELAY_SECONDS"] = "0"
os.environ["ORDER_RESPONSE_DELAY_SECONDS"] = "0"
os.environ["SERVE_DELAY_SECONDS"] = "0"
os.environ["CLIENT_DIST_DIR"] = str(Path(_TEST_DIR) / "no-client")

import pytest
from fastapi.testclient import TestClient

from pixel_tavern.config import reload_settings
from pixel_tavern.db.sqlite import init_db
from pixel_tavern.tasks.jobs import job_seed_database, job_create_initial_items

reload_settings()


@pytest.fixture(autouse=True)
def fresh_db():
    """Recreate and seed the schema for every test."""
    init_db(drop_all=True)
    job_seed_database()
    job_create_initial_items()
    yield


@pytest.fixture(scope="session")
def test_app():
    from pixel_tavern.main import app
    yield app


@pytest.fixture
def client(test_app):
    """Test client fixture (runs the lifespan)."""
    from pixel_tavern.services.chat import hub

    hub.rng = random.Random(7)
    with TestClient(test_app) as test_client:
        yield test_client


def receive_until(ws, message_type: str, limit: int = 25) -> dict:
    """Read frames until one of the given type arrives."""
    for _ in range(limit):
        frame = ws.receive_json()
        if frame["type"] == message_type:
            return frame
    raise AssertionError(f"No {message_type} frame within {limit} frames")


def join_as(ws, username: str, avatar: str = "knight") -> dict:
    """Send the guest handshake and return the user from the welcome frame."""
    ws.send_json({"type": "user_joined", "payload": {"username": username, "avatar": avatar}})
    welcome = receive_until(ws, "user_joined")
    receive_until(ws, "room_users")
    return welcome["payload"]["user"]
