"""
Real-time tavern chat over WebSockets.

ConnectionManager tracks who is connected and in which room; TavernHub runs
a session: the registration handshake, then one handler per incoming frame
type. Bartender follow-ups (order replies, serving, chatter) run as delayed
asyncio tasks owned by the hub.
"""
import asyncio
import random
import re
from typing import Any, Awaitable, Callable, Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from pixel_tavern.config import get_settings
from pixel_tavern.db.models import Bartender, Room, User
from pixel_tavern.errors import TavernError
from pixel_tavern.protocol import (
    MemoryType,
    MessageKind,
    UnknownMessageTypeError,
    WebSocketMessageType,
    envelope,
    error_envelope,
    parse_frame,
)
from pixel_tavern.schemas import (
    BartenderOut,
    EquipRequest,
    MemoryEntry,
    MenuItemOut,
    MessageOut,
    OrderItemPayload,
    RoomOut,
    SendMessagePayload,
    UnequipRequest,
    UserJoinPayload,
    UserOut,
    JoinRoomPayload,
    LoginRequest,
)
from pixel_tavern.services import accounts, bartenders, inventory, rooms
from pixel_tavern.services.dialogue import (
    check_for_bartender_mention,
    extract_query_from_mention,
    generate_reply,
    greeting_for,
    is_menu_command,
    is_order_command,
    parse_order,
    recollection_for,
    serve_line,
)
from pixel_tavern.services.sentiment import (
    adjust_response_based_on_mood,
    analyze_sentiment,
    get_mood_description,
    get_mood_icon,
)


# === Serialization ===

def user_wire(user: User) -> dict[str, Any]:
    return UserOut.model_validate(user).to_wire()


def bartender_wire(bartender: Bartender) -> dict[str, Any]:
    return BartenderOut.model_validate(bartender).to_wire()


def room_wire(room: Room) -> dict[str, Any]:
    return RoomOut.model_validate(room).to_wire()


def message_wire(message) -> dict[str, Any]:
    return MessageOut.model_validate(message).to_wire()


def memory_wire(entry: dict[str, Any]) -> dict[str, Any]:
    return MemoryEntry.model_validate(entry).to_wire()


# === Memory Extraction ===

# (pattern, memory type, importance) for things patrons say about themselves
DISCLOSURE_PATTERNS = [
    (re.compile(r"\bmy name is\b", re.IGNORECASE), MemoryType.PERSONAL, 4),
    (re.compile(r"\bi(?:'m| am) from\b", re.IGNORECASE), MemoryType.PERSONAL, 3),
    (re.compile(r"\bmy favou?rite\b", re.IGNORECASE), MemoryType.PREFERENCE, 4),
    (re.compile(r"\bi (?:really )?(?:like|love|enjoy|prefer)\b", re.IGNORECASE), MemoryType.PREFERENCE, 3),
    (re.compile(r"\bi (?:really )?(?:hate|dislike|can't stand)\b", re.IGNORECASE), MemoryType.PREFERENCE, 3),
]

MAX_MEMORY_QUOTE = 200


def memory_from_message(content: str, score: int, threshold: int) -> Optional[dict[str, Any]]:
    """
    Decide whether a chat line is worth remembering.

    Self-disclosures become personal/preference memories; otherwise lines
    whose sentiment reaches the threshold become event memories.

    Returns:
        Keyword arguments for bartenders.add_memory_entry, or None
    """
    quote = content if len(content) <= MAX_MEMORY_QUOTE else content[:MAX_MEMORY_QUOTE - 1] + "…"

    for pattern, memory_type, importance in DISCLOSURE_PATTERNS:
        if pattern.search(content):
            return {
                "content": f"Told me: \"{quote}\"",
                "type": memory_type,
                "importance": importance,
            }

    if abs(score) >= threshold:
        return {
            "content": f"{'Praised' if score > 0 else 'Insulted'} me: \"{quote}\"",
            "type": MemoryType.EVENT,
            "importance": 5 if abs(score) >= 10 else 4,
            "context": "positive" if score > 0 else "negative",
        }

    return None


# === Connections ===

class TavernClient:
    """One connected socket and the user behind it."""

    def __init__(self, websocket: WebSocket, user_id: int, username: str, room_id: int):
        self.websocket = websocket
        self.user_id = user_id
        self.username = username
        self.room_id = room_id


class ConnectionManager:
    """
    WebSocket connection registry.

    - Room-scoped broadcast
    - Sockets that fail to send are dropped from the registry
    """

    def __init__(self):
        self.active_connections: dict[WebSocket, TavernClient] = {}

    def connect(self, client: TavernClient) -> None:
        self.active_connections[client.websocket] = client
        print(f"[WS] {client.username} connected ({len(self.active_connections)} online)")

    def disconnect(self, websocket: WebSocket) -> Optional[TavernClient]:
        client = self.active_connections.pop(websocket, None)
        if client is not None:
            print(f"[WS] {client.username} disconnected ({len(self.active_connections)} online)")
        return client

    def is_user_connected(self, user_id: int) -> bool:
        return any(c.user_id == user_id for c in self.active_connections.values())

    def clients_for_user(self, user_id: int) -> list[TavernClient]:
        return [c for c in self.active_connections.values() if c.user_id == user_id]

    @property
    def connection_count(self) -> int:
        return len(self.active_connections)

    async def send_personal(self, websocket: WebSocket, message: dict[str, Any]) -> bool:
        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            print(f"[WS ERROR] Send failed: {e}")
            self.disconnect(websocket)
            return False

    async def broadcast_to_room(self, room_id: int, message: dict[str, Any]) -> None:
        dead_connections = []

        for websocket, client in list(self.active_connections.items()):
            if client.room_id != room_id:
                continue
            try:
                await websocket.send_json(message)
            except Exception as e:
                print(f"[WS ERROR] Broadcast failed for {client.username}: {e}")
                dead_connections.append(websocket)

        for websocket in dead_connections:
            self.disconnect(websocket)


# === Hub ===

class TavernHub:
    """Runs WebSocket sessions against the tavern services."""

    def __init__(self, manager: Optional[ConnectionManager] = None, rng: Optional[random.Random] = None):
        self.manager = manager or ConnectionManager()
        self.rng = rng or random.Random()
        self._tasks: set[asyncio.Task] = set()
        self._handlers: dict[WebSocketMessageType, Callable[[TavernClient, dict], Awaitable[None]]] = {
            WebSocketMessageType.JOIN_ROOM: self.handle_join_room,
            WebSocketMessageType.LEAVE_ROOM: self.handle_leave_room,
            WebSocketMessageType.SEND_MESSAGE: self.handle_send_message,
            WebSocketMessageType.ORDER_ITEM: self.handle_order_item,
            WebSocketMessageType.INVENTORY_GET: self.handle_inventory_get,
            WebSocketMessageType.INVENTORY_EQUIP_ITEM: self.handle_equip_item,
            WebSocketMessageType.INVENTORY_UNEQUIP_ITEM: self.handle_unequip_item,
        }

    # --- background tasks ---

    def _schedule(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            print(f"[WS ERROR] Bartender task failed: {task.exception()}")

    async def shutdown(self) -> None:
        """Cancel pending bartender follow-ups."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    # --- sending helpers ---

    async def _send(self, client: TavernClient, message_type: WebSocketMessageType, payload: dict) -> None:
        await self.manager.send_personal(client.websocket, envelope(message_type, payload))

    async def _send_error(self, websocket: WebSocket, message: str) -> None:
        await self.manager.send_personal(websocket, error_envelope(message))

    async def _broadcast(self, room_id: int, message_type: WebSocketMessageType, payload: dict) -> None:
        await self.manager.broadcast_to_room(room_id, envelope(message_type, payload))

    async def _announce(self, room_id: int, content: str) -> None:
        """Store a system line and broadcast it to the room."""
        message = rooms.create_system_message(room_id, content)
        await self._broadcast(room_id, WebSocketMessageType.NEW_MESSAGE, {"message": message_wire(message)})

    async def _broadcast_room_users(self, room_id: int) -> None:
        users = accounts.get_online_users(room_id)
        await self._broadcast(room_id, WebSocketMessageType.ROOM_USERS, {"users": [user_wire(u) for u in users]})

    async def _post_bartender_message(self, room_id: int, bartender: Bartender, content: str) -> None:
        message = rooms.create_message(
            room_id, content, type=MessageKind.BARTENDER, bartender_id=bartender.id
        )
        await self._broadcast(room_id, WebSocketMessageType.BARTENDER_RESPONSE, {
            "message": message_wire(message),
            "bartender": bartender_wire(bartender),
        })

    async def send_to_user(self, user_id: int, message_type: WebSocketMessageType, payload: dict) -> int:
        """
        Push a frame to every socket of a user (e.g. after a REST purchase).

        Returns:
            Number of sockets reached
        """
        sent = 0
        for client in self.manager.clients_for_user(user_id):
            if await self.manager.send_personal(client.websocket, envelope(message_type, payload)):
                sent += 1
        return sent

    # --- session ---

    async def serve(self, websocket: WebSocket) -> None:
        """Full lifecycle of one socket: accept, handshake, frame loop, cleanup."""
        await websocket.accept()

        client = await self.handshake(websocket)
        if client is None:
            return

        try:
            while True:
                raw = await self._receive_frame(websocket)
                if raw is None:
                    await self._send_error(websocket, "Invalid message format")
                    continue
                await self.handle_frame(client, raw)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            print(f"[WS ERROR] Session for {client.username} ended: {e}")
        finally:
            await self.on_disconnect(client)

    async def _receive_frame(self, websocket: WebSocket) -> Optional[str]:
        """Next text frame, or None for a binary one."""
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000))
        return message.get("text")

    async def _reject(self, websocket: WebSocket, message: str) -> None:
        await self._send_error(websocket, message)
        try:
            await websocket.close()
        except RuntimeError as e:
            print(f"[WS] Close after rejection failed: {e}")

    def _resolve_room(self, requested: Optional[int], fallback: Optional[int] = None) -> int:
        settings = get_settings()
        for room_id in (requested, fallback, settings.DEFAULT_ROOM_ID):
            if room_id is not None and rooms.get_room(room_id) is not None:
                return room_id
        all_rooms = rooms.get_rooms()
        return all_rooms[0].id if all_rooms else settings.DEFAULT_ROOM_ID

    async def handshake(self, websocket: WebSocket) -> Optional[TavernClient]:
        """
        Read the first frame and register the session.

        The first frame must be user_joined (guest) or auth_login
        (registered account). Failures send an error and close the socket.
        """
        try:
            raw = await self._receive_frame(websocket)
        except WebSocketDisconnect:
            return None

        if raw is None:
            await self._reject(websocket, "Invalid message format")
            return None

        try:
            message_type, payload = parse_frame(raw)
        except ValueError:
            await self._reject(websocket, "Invalid message format")
            return None

        try:
            if message_type == WebSocketMessageType.USER_JOINED:
                return await self._register_guest(websocket, payload)
            if message_type == WebSocketMessageType.AUTH_LOGIN:
                return await self._login(websocket, payload)
        except ValidationError:
            await self._reject(websocket, "Invalid user data")
            return None
        except TavernError as e:
            await self._reject(websocket, e.message)
            return None
        except Exception as e:
            print(f"[WS ERROR] Error in user registration: {e}")
            await self._reject(websocket, "Invalid user data")
            return None

        await self._reject(websocket, "First message must be user registration")
        return None

    async def _welcome(self, websocket: WebSocket, user: User) -> TavernClient:
        client = TavernClient(websocket, user.id, user.username, user.room_id)
        self.manager.connect(client)
        await self._send(client, WebSocketMessageType.USER_JOINED, {
            "user": user_wire(user),
            "rooms": [room_wire(r) for r in rooms.get_rooms()],
            "bartenders": [bartender_wire(b) for b in bartenders.get_bartenders()],
        })
        return client

    async def _register_guest(self, websocket: WebSocket, payload: dict) -> Optional[TavernClient]:
        data = UserJoinPayload.model_validate(payload)
        existing = accounts.get_user_by_username(data.username)

        if existing is not None:
            if existing.password_hash:
                await self._reject(websocket, "Please log in to use this name")
                return None
            if existing.online or self.manager.is_user_connected(existing.id):
                await self._reject(websocket, "Username already taken")
                return None

            room_id = self._resolve_room(data.room_id, existing.room_id)
            accounts.update_user_room(existing.id, room_id)
            user = accounts.update_user_status(existing.id, True)
            client = await self._welcome(websocket, user)
            await self._announce(room_id, f"{user.username} returned to the tavern.")
            await self._broadcast_room_users(room_id)
            return client

        room_id = self._resolve_room(data.room_id)
        user = accounts.create_user(data.username, data.avatar, room_id=room_id)
        client = await self._welcome(websocket, user)
        await self._announce(room_id, f"{user.username} entered the tavern.")
        await self._greet(client, user, room_id)
        await self._broadcast_room_users(room_id)
        return client

    async def _login(self, websocket: WebSocket, payload: dict) -> Optional[TavernClient]:
        data = LoginRequest.model_validate(payload)
        known = accounts.get_user_by_username(data.username)
        if known is not None and self.manager.is_user_connected(known.id):
            await self._reject(websocket, "User already connected")
            return None

        user = accounts.verify_user(data.username, data.password)
        if user is None:
            await self._reject(websocket, "Invalid credentials")
            return None

        room_id = self._resolve_room(user.room_id)
        if room_id != user.room_id:
            user = accounts.update_user_room(user.id, room_id)

        client = await self._welcome(websocket, user)
        await self._announce(room_id, f"{user.username} returned to the tavern.")
        await self._broadcast_room_users(room_id)
        return client

    async def on_disconnect(self, client: TavernClient) -> None:
        self.manager.disconnect(client.websocket)
        try:
            accounts.update_user_status(client.user_id, False)
            await self._announce(client.room_id, f"{client.username} left the tavern.")
            await self._broadcast_room_users(client.room_id)
        except Exception as e:
            print(f"[WS ERROR] Disconnect cleanup failed for {client.username}: {e}")

    # --- frame dispatch ---

    async def handle_frame(self, client: TavernClient, raw: str) -> None:
        try:
            message_type, payload = parse_frame(raw)
        except UnknownMessageTypeError:
            await self._send_error(client.websocket, "Unknown message type")
            return
        except ValueError:
            await self._send_error(client.websocket, "Invalid message format")
            return

        handler = self._handlers.get(message_type)
        if handler is None:
            await self._send_error(client.websocket, "Unknown message type")
            return

        try:
            await handler(client, payload)
        except ValidationError:
            await self._send_error(client.websocket, "Invalid message format")
        except TavernError as e:
            await self._send_error(client.websocket, e.message)
        except Exception as e:
            print(f"[WS ERROR] Error handling {message_type.value}: {e}")
            await self._send_error(client.websocket, "Error processing message")

    # --- rooms ---

    async def _greet(self, client: TavernClient, user: User, room_id: int) -> None:
        """Resident bartender greets, then recalls the patron if she can."""
        bartender = rooms.bartender_for_room(room_id)
        if bartender is None:
            return

        mood = bartenders.get_mood_value(user.id, bartender.id)
        greeting = adjust_response_based_on_mood(
            greeting_for(bartender.name, self.rng), mood, bartender.name, self.rng
        )
        await self._post_bartender_message(room_id, bartender, greeting)
        await self._send(client, WebSocketMessageType.BARTENDER_GREETING, {
            "bartender": bartender_wire(bartender),
            "mood": mood,
            "moodDescription": get_mood_description(mood),
            "moodIcon": get_mood_icon(mood),
        })

        memories = bartenders.get_memory_entries(user.id, bartender.id, limit=3)
        if memories:
            await self._send(client, WebSocketMessageType.BARTENDER_MEMORY_RECOLLECTION, {
                "bartender": bartender_wire(bartender),
                "memories": [memory_wire(m) for m in memories],
                "message": recollection_for(user.username, memories[0]["content"], self.rng),
            })

    async def _move_to_room(self, client: TavernClient, room: Room) -> None:
        settings = get_settings()
        old_room_id = client.room_id
        client.room_id = room.id

        user = accounts.update_user_room(client.user_id, room.id)
        history = rooms.get_messages_by_room(room.id, settings.MESSAGE_HISTORY_LIMIT)
        await self._send(client, WebSocketMessageType.JOIN_ROOM, {
            "room": room_wire(room),
            "messages": [message_wire(m) for m in history],
        })

        if old_room_id != room.id:
            await self._broadcast(old_room_id, WebSocketMessageType.USER_LEFT, {"userId": client.user_id})
            await self._broadcast_room_users(old_room_id)

        await self._announce(room.id, f"{user.username} joined the room.")
        await self._broadcast(room.id, WebSocketMessageType.USER_JOINED, {"user": user_wire(user)})
        await self._broadcast_room_users(room.id)
        await self._greet(client, user, room.id)

    async def handle_join_room(self, client: TavernClient, payload: dict) -> None:
        data = JoinRoomPayload.model_validate(payload)
        room = rooms.get_room(data.room_id)
        if room is None:
            await self._send_error(client.websocket, "Room not found")
            return
        await self._move_to_room(client, room)

    async def handle_leave_room(self, client: TavernClient, payload: dict) -> None:
        room = rooms.get_room(self._resolve_room(get_settings().DEFAULT_ROOM_ID))
        if room is None:
            await self._send_error(client.websocket, "Room not found")
            return
        await self._move_to_room(client, room)

    # --- chat ---

    async def handle_send_message(self, client: TavernClient, payload: dict) -> None:
        data = SendMessagePayload.model_validate(payload)
        room_id = client.room_id

        if data.type == MessageKind.EMOTE.value:
            message = rooms.create_message(
                room_id, f"{client.username} {data.content}",
                type=MessageKind.EMOTE, user_id=client.user_id,
            )
            await self._broadcast(room_id, WebSocketMessageType.NEW_MESSAGE, {"message": message_wire(message)})
            return

        if is_menu_command(data.content):
            notice = rooms.create_system_message(room_id, "Opening the tavern menu...")
            await self._send(client, WebSocketMessageType.NEW_MESSAGE, {"message": message_wire(notice)})
            await self._send(client, WebSocketMessageType.ORDER_ITEM, {
                "action": "open_menu",
                "menuItems": [MenuItemOut.model_validate(m).to_wire() for m in bartenders.get_menu_items()],
            })
            return

        if is_order_command(data.content):
            item_name = parse_order(data.content)
            if not item_name:
                await self._send_error(client.websocket, "Tell the bartender what to bring: /order <item>")
                return
            await self._place_order(client, item_name)
            return

        message = rooms.create_message(room_id, data.content, type=MessageKind.USER, user_id=client.user_id)
        await self._broadcast(room_id, WebSocketMessageType.NEW_MESSAGE, {"message": message_wire(message)})
        await self._react_to_chat(client, data.content)

    async def _react_to_chat(self, client: TavernClient, content: str) -> None:
        """Mood shift, memory and (maybe) a reply from the bartender being talked to."""
        settings = get_settings()

        resident = rooms.bartender_for_room(client.room_id)
        mentioned_name = check_for_bartender_mention(content)
        mentioned = bartenders.get_bartender_by_name(mentioned_name) if mentioned_name else None
        listener = mentioned or resident
        if listener is None:
            return

        score = analyze_sentiment(content)
        if score:
            record = bartenders.update_bartender_mood(client.user_id, listener.id, score)
            await self._send(client, WebSocketMessageType.BARTENDER_MOOD_UPDATE, {
                "bartenderId": listener.id,
                "bartenderName": listener.name,
                "mood": record.mood,
                "change": score,
                "description": get_mood_description(record.mood),
                "icon": get_mood_icon(record.mood),
            })

        memory = memory_from_message(content, score, settings.MEMORY_SENTIMENT_THRESHOLD)
        if memory is not None:
            entry = bartenders.add_memory_entry(client.user_id, listener.id, **memory)
            await self._send(client, WebSocketMessageType.BARTENDER_MEMORY_UPDATE, {
                "bartenderId": listener.id,
                "bartenderName": listener.name,
                "entry": memory_wire(entry),
            })

        delay = self.rng.uniform(settings.CHAT_REPLY_MIN_DELAY_SECONDS, settings.CHAT_REPLY_MAX_DELAY_SECONDS)
        if mentioned is not None:
            query = extract_query_from_mention(content, mentioned.name) or content
            self._schedule(self._bartender_reply(client.room_id, client, mentioned, query, delay))
        elif self.rng.random() < settings.BARTENDER_REPLY_CHANCE:
            self._schedule(self._bartender_reply(client.room_id, client, listener, content, delay))

    async def _bartender_reply(
        self,
        room_id: int,
        client: TavernClient,
        bartender: Bartender,
        content: str,
        delay: float,
    ) -> None:
        await asyncio.sleep(delay)
        mood = bartenders.get_mood_value(client.user_id, bartender.id)
        summary = bartenders.get_summarized_memories(client.user_id, bartender.id)
        reply = await generate_reply(
            bartender.name,
            content,
            client.username,
            mood=mood,
            memory_summary=summary,
            rng=self.rng,
        )
        await self._post_bartender_message(room_id, bartender, reply)

    # --- orders ---

    async def _place_order(self, client: TavernClient, item_name: str) -> None:
        await self._announce(client.room_id, f"You ordered: {item_name}")
        self._schedule(self._serve_order(client.room_id, client, item_name))

    async def _serve_order(self, room_id: int, client: TavernClient, item_name: str) -> None:
        settings = get_settings()
        await asyncio.sleep(settings.ORDER_RESPONSE_DELAY_SECONDS)

        bartender = rooms.bartender_for_room(room_id)
        if bartender is None:
            return

        mood = bartenders.get_mood_value(client.user_id, bartender.id)
        reply = await generate_reply(
            bartender.name,
            f"/order {item_name}",
            client.username,
            mood=mood,
            rng=self.rng,
        )
        await self._post_bartender_message(room_id, bartender, reply)

        await asyncio.sleep(settings.SERVE_DELAY_SECONDS)
        await self._announce(room_id, serve_line(bartender.name, item_name))

    async def handle_order_item(self, client: TavernClient, payload: dict) -> None:
        data = OrderItemPayload.model_validate(payload)
        menu_item = bartenders.get_menu_item(data.item_id)
        if menu_item is None:
            await self._send_error(client.websocket, "Menu item not found")
            return
        await self._place_order(client, menu_item.name)

    # --- inventory ---

    async def send_inventory(self, client: TavernClient) -> None:
        await self._send(client, WebSocketMessageType.INVENTORY_UPDATE, inventory_payload(client.user_id))

    async def handle_inventory_get(self, client: TavernClient, payload: dict) -> None:
        await self.send_inventory(client)

    async def handle_equip_item(self, client: TavernClient, payload: dict) -> None:
        data = EquipRequest.model_validate(payload)
        if inventory.equip_item(client.user_id, data.item_id, data.slot.value) is None:
            await self._send_error(client.websocket, "Item not found in inventory")
            return
        await self.send_inventory(client)

    async def handle_unequip_item(self, client: TavernClient, payload: dict) -> None:
        data = UnequipRequest.model_validate(payload)
        if inventory.unequip_item(client.user_id, data.item_id) is None:
            await self._send_error(client.websocket, "Item not found or not equipped")
            return
        await self.send_inventory(client)


def inventory_payload(user_id: int) -> dict[str, Any]:
    """Body of an inventory_update frame."""
    return {
        "inventory": [entry.to_wire() for entry in inventory.get_user_inventory(user_id)],
        "equipped": [entry.to_wire() for entry in inventory.get_equipped_items(user_id)],
    }


hub = TavernHub()
