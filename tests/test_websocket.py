"""
End-to-end tests of the /ws chat protocol.

Bartender delays and the random reply chance are zeroed in conftest, so
bartender follow-ups arrive right after the frame that triggers them.
"""
import asyncio

import pytest

from conftest import join_as, receive_until
from pixel_tavern.services import accounts, bartenders, inventory
from pixel_tavern.services.chat import TavernHub, hub


def test_guest_handshake(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "user_joined", "payload": {"username": "Aria", "avatar": "mage"}})

        welcome = ws.receive_json()
        assert welcome["type"] == "user_joined"
        assert welcome["payload"]["user"]["username"] == "Aria"
        assert welcome["payload"]["user"]["roomId"] == 1
        assert len(welcome["payload"]["rooms"]) == 3
        assert len(welcome["payload"]["bartenders"]) == 3

        entered = ws.receive_json()
        assert entered["type"] == "new_message"
        assert entered["payload"]["message"]["content"] == "Aria entered the tavern."
        assert entered["payload"]["message"]["type"] == "system"

        greeting = ws.receive_json()
        assert greeting["type"] == "bartender_response"
        assert greeting["payload"]["bartender"]["name"] == "Amethyst"
        assert greeting["payload"]["message"]["type"] == "bartender"

        mood = ws.receive_json()
        assert mood["type"] == "bartender_greeting"
        assert mood["payload"]["mood"] == 50
        assert mood["payload"]["moodDescription"] == "is friendly toward you"

        users = ws.receive_json()
        assert users["type"] == "room_users"
        assert [u["username"] for u in users["payload"]["users"]] == ["Aria"]


def test_first_frame_must_register(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "join_room", "payload": {"roomId": 2}})
        error = ws.receive_json()
        assert error == {"type": "error", "payload": {"message": "First message must be user registration"}}


def test_invalid_registration(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "user_joined", "payload": {"username": "   "}})
        error = ws.receive_json()
        assert error["payload"]["message"] == "Invalid user data"


def test_username_taken_while_online(client):
    with client.websocket_connect("/ws") as first:
        join_as(first, "Bran")

        with client.websocket_connect("/ws") as second:
            second.send_json({"type": "user_joined", "payload": {"username": "bran"}})
            error = second.receive_json()
            assert error["payload"]["message"] == "Username already taken"


def test_returning_guest(client):
    with client.websocket_connect("/ws") as ws:
        user = join_as(ws, "Corin")

    assert accounts.get_user(user["id"]).online is False

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "user_joined", "payload": {"username": "Corin"}})
        welcome = receive_until(ws, "user_joined")
        assert welcome["payload"]["user"]["id"] == user["id"]

        back = receive_until(ws, "new_message")
        assert back["payload"]["message"]["content"] == "Corin returned to the tavern."


def test_guest_cannot_take_registered_name(client):
    # Registration leaves the account online; the password check comes first
    accounts.register_user("Dagny", "password1")

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "user_joined", "payload": {"username": "Dagny"}})
        error = ws.receive_json()
        assert error["payload"]["message"] == "Please log in to use this name"


def test_auth_login(client):
    user = accounts.register_user("Edda", "password1")
    accounts.update_user_status(user.id, False)

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth_login", "payload": {"username": "Edda", "password": "password1"}})
        welcome = receive_until(ws, "user_joined")
        assert welcome["payload"]["user"]["id"] == user.id

        back = receive_until(ws, "new_message")
        assert back["payload"]["message"]["content"] == "Edda returned to the tavern."


def test_auth_login_bad_password(client):
    accounts.register_user("Fenna", "password1")

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth_login", "payload": {"username": "Fenna", "password": "nope"}})
        error = ws.receive_json()
        assert error["payload"]["message"] == "Invalid credentials"


def test_bad_frames_keep_socket_open(client):
    with client.websocket_connect("/ws") as ws:
        join_as(ws, "Gale")

        ws.send_text("this is not json")
        assert ws.receive_json()["payload"]["message"] == "Invalid message format"

        ws.send_json({"type": "juggle", "payload": {}})
        assert ws.receive_json()["payload"]["message"] == "Unknown message type"

        ws.send_json({"type": "send_message", "payload": {"content": ""}})
        assert ws.receive_json()["payload"]["message"] == "Invalid message format"

        ws.send_json({"type": "inventory_get"})
        assert ws.receive_json()["type"] == "inventory_update"


def test_chat_message_updates_mood_and_memory(client):
    with client.websocket_connect("/ws") as ws:
        user = join_as(ws, "Hale")

        ws.send_json({"type": "send_message", "payload": {"content": "I love this place, you're amazing!"}})

        posted = ws.receive_json()
        assert posted["type"] == "new_message"
        assert posted["payload"]["message"]["userId"] == user["id"]
        assert posted["payload"]["message"]["type"] == "user"

        mood = ws.receive_json()
        assert mood["type"] == "bartender_mood_update"
        assert mood["payload"]["bartenderName"] == "Amethyst"
        assert mood["payload"]["mood"] > 50
        assert mood["payload"]["change"] > 0

        memory = ws.receive_json()
        assert memory["type"] == "bartender_memory_update"
        assert memory["payload"]["entry"]["type"] == "preference"

    assert bartenders.get_mood_value(user["id"], 1) > 50
    assert len(bartenders.get_memory_entries(user["id"], 1)) == 1


def test_mention_gets_a_reply(client):
    with client.websocket_connect("/ws") as ws:
        join_as(ws, "Ivo")

        ws.send_json({"type": "send_message", "payload": {"content": "@Ruby what's the news?"}})

        reply = receive_until(ws, "bartender_response")
        assert reply["payload"]["bartender"]["name"] == "Ruby"
        assert reply["payload"]["message"]["bartenderId"] == 3


def test_emote(client):
    with client.websocket_connect("/ws") as ws:
        join_as(ws, "Jory")

        ws.send_json({"type": "send_message", "payload": {"content": "raises a mug", "type": "emote"}})
        emote = ws.receive_json()
        assert emote["payload"]["message"]["content"] == "Jory raises a mug"
        assert emote["payload"]["message"]["type"] == "emote"


def test_menu_command(client):
    with client.websocket_connect("/ws") as ws:
        join_as(ws, "Kell")

        ws.send_json({"type": "send_message", "payload": {"content": "/menu"}})
        notice = ws.receive_json()
        assert notice["payload"]["message"]["content"] == "Opening the tavern menu..."

        menu = ws.receive_json()
        assert menu["type"] == "order_item"
        assert menu["payload"]["action"] == "open_menu"
        assert len(menu["payload"]["menuItems"]) == 12


def test_order_command(client):
    with client.websocket_connect("/ws") as ws:
        join_as(ws, "Lark")

        ws.send_json({"type": "send_message", "payload": {"content": "/order Dwarven Mead"}})

        ordered = ws.receive_json()
        assert ordered["payload"]["message"]["content"] == "You ordered: Dwarven Mead"

        reply = receive_until(ws, "bartender_response")
        assert reply["payload"]["bartender"]["name"] == "Amethyst"

        served = receive_until(ws, "new_message")
        assert served["payload"]["message"]["content"] == (
            "Amethyst slides a fresh Dwarven Mead across the counter to you."
        )


def test_order_item_frame(client):
    with client.websocket_connect("/ws") as ws:
        join_as(ws, "Mira")

        ws.send_json({"type": "order_item", "payload": {"itemId": 999}})
        assert ws.receive_json()["payload"]["message"] == "Menu item not found"

        ws.send_json({"type": "order_item", "payload": {"itemId": 3}})
        ordered = ws.receive_json()
        assert ordered["payload"]["message"]["content"] == "You ordered: Dwarven Mead"


def test_join_room(client):
    with client.websocket_connect("/ws") as ws:
        join_as(ws, "Nell")

        ws.send_json({"type": "join_room", "payload": {"roomId": 42}})
        assert ws.receive_json()["payload"]["message"] == "Room not found"

        ws.send_json({"type": "join_room", "payload": {"roomId": 3}})
        joined = ws.receive_json()
        assert joined["type"] == "join_room"
        assert joined["payload"]["room"]["name"] == "The Dragon's Den"
        assert isinstance(joined["payload"]["messages"], list)

        greeting = receive_until(ws, "bartender_response")
        assert greeting["payload"]["bartender"]["name"] == "Ruby"

        ws.send_json({"type": "leave_room"})
        back = receive_until(ws, "join_room")
        assert back["payload"]["room"]["id"] == 1


def test_room_broadcast_reaches_other_patrons(client):
    with client.websocket_connect("/ws") as first:
        join_as(first, "Odo")

        with client.websocket_connect("/ws") as second:
            join_as(second, "Pia")

            # Odo hears Pia arrive
            arrived = receive_until(first, "new_message")
            assert arrived["payload"]["message"]["content"] == "Pia entered the tavern."

            second.send_json({"type": "send_message", "payload": {"content": "The weather turned."}})
            heard = receive_until(first, "new_message")
            assert heard["payload"]["message"]["content"] == "The weather turned."


def test_memory_recollection_on_join(client):
    with client.websocket_connect("/ws") as ws:
        user = join_as(ws, "Quill")
        bartenders.add_memory_entry(user["id"], 1, "Told me: \"I like quiet corners\"")

        ws.send_json({"type": "join_room", "payload": {"roomId": 1}})
        recollection = receive_until(ws, "bartender_memory_recollection")
        assert recollection["payload"]["bartender"]["name"] == "Amethyst"
        assert recollection["payload"]["memories"][0]["content"] == "Told me: \"I like quiet corners\""
        assert "Quill" in recollection["payload"]["message"]


def test_inventory_frames(client):
    with client.websocket_connect("/ws") as ws:
        user = join_as(ws, "Rook")
        inventory.add_item_to_inventory(user["id"], 1)

        ws.send_json({"type": "inventory_equip_item", "payload": {"itemId": 1, "slot": "mainHand"}})
        update = ws.receive_json()
        assert update["type"] == "inventory_update"
        assert update["payload"]["equipped"][0]["equipSlot"] == "mainHand"

        ws.send_json({"type": "inventory_equip_item", "payload": {"itemId": 2, "slot": "offHand"}})
        assert ws.receive_json()["payload"]["message"] == "Item not found in inventory"

        ws.send_json({"type": "inventory_unequip_item", "payload": {"itemId": 1}})
        update = ws.receive_json()
        assert update["payload"]["equipped"] == []
        assert len(update["payload"]["inventory"]) == 1


def test_disconnect_marks_offline(client):
    with client.websocket_connect("/ws") as first:
        join_as(first, "Sly")

        with client.websocket_connect("/ws") as second:
            user = join_as(second, "Tib")

        left = receive_until(first, "new_message")
        while left["payload"]["message"]["content"] != "Tib left the tavern.":
            left = receive_until(first, "new_message")

    assert accounts.get_user(user["id"]).online is False


def test_binary_frame_keeps_session(client):
    with client.websocket_connect("/ws") as ws:
        user = join_as(ws, "Bina")

        ws.send_bytes(b"\x00\x01")
        error = ws.receive_json()
        assert error == {"type": "error", "payload": {"message": "Invalid message format"}}

        ws.send_json({"type": "inventory_get"})
        assert ws.receive_json()["type"] == "inventory_update"
        assert hub.manager.is_user_connected(user["id"])
        assert accounts.get_user(user["id"]).online is True


def test_binary_first_frame_is_rejected(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00\x01")
        assert ws.receive_json()["payload"]["message"] == "Invalid message format"


def test_login_while_connected(client):
    accounts.register_user("Uma", "password1")
    login = {"type": "auth_login", "payload": {"username": "Uma", "password": "password1"}}

    with client.websocket_connect("/ws") as first:
        first.send_json(login)
        receive_until(first, "room_users")

        with client.websocket_connect("/ws") as second:
            second.send_json(login)
            error = second.receive_json()
            assert error["payload"]["message"] == "User already connected"


def test_mentioned_bartender_takes_the_mood(client):
    with client.websocket_connect("/ws") as ws:
        user = join_as(ws, "Vesna")

        ws.send_json({"type": "send_message", "payload": {"content": "@Ruby you're amazing!"}})
        mood = receive_until(ws, "bartender_mood_update")
        assert mood["payload"]["bartenderName"] == "Ruby"
        assert mood["payload"]["bartenderId"] == 3

    assert bartenders.get_mood_value(user["id"], 3) > 50
    assert bartenders.get_mood_value(user["id"], 1) == 50


def test_rest_changes_reach_open_socket(client):
    with client.websocket_connect("/ws") as ws:
        user = join_as(ws, "Wren")
        base = f"/api/inventory/user/{user['id']}"

        assert client.post(f"{base}/currency/add", json={"silver": 50}).status_code == 200
        currency = receive_until(ws, "currency_update")
        assert currency["payload"]["currency"] == {"silver": 50, "gold": 1}

        assert client.post(f"{base}/inventory/add", json={"itemId": 9, "quantity": 2}).status_code == 200
        update = receive_until(ws, "inventory_update")
        assert update["payload"]["inventory"][0]["itemId"] == 9
        assert update["payload"]["inventory"][0]["quantity"] == 2


def test_actions_reach_open_socket(client):
    with client.websocket_connect("/ws") as ws:
        user = join_as(ws, "Yara")

        response = client.post(f"/api/users/{user['id']}/actions/updateGold", json={"newGold": 12})
        assert response.status_code == 200
        currency = receive_until(ws, "currency_update")
        assert currency["payload"]["currency"] == {"silver": 100, "gold": 12}

        response = client.post(
            f"/api/users/{user['id']}/inventory/actions/addItem", json={"itemId": 10, "quantity": 3}
        )
        assert response.status_code == 200
        update = receive_until(ws, "inventory_update")
        assert [(e["itemId"], e["quantity"]) for e in update["payload"]["inventory"]] == [(10, 3)]


@pytest.mark.asyncio
async def test_hub_shutdown_cancels_pending_replies():
    hub = TavernHub()

    async def slow_reply():
        await asyncio.sleep(60)

    hub._schedule(slow_reply())
    assert hub.pending_tasks == 1

    await hub.shutdown()
    assert hub.pending_tasks == 0
