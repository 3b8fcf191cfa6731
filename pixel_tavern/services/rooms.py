"""
Room service: rooms, chat history and which bartender serves where.
"""
from typing import Optional

from sqlmodel import select, func, desc

from pixel_tavern.db.models import Room, Message, Bartender
from pixel_tavern.deps import get_session_context
from pixel_tavern.errors import ConflictError
from pixel_tavern.protocol import MessageKind


# === Rooms ===

def get_room(room_id: int) -> Optional[Room]:
    with get_session_context() as session:
        return session.get(Room, room_id)


def get_room_by_name(name: str) -> Optional[Room]:
    with get_session_context() as session:
        statement = select(Room).where(func.lower(Room.name) == name.strip().lower())
        return session.exec(statement).first()


def get_rooms() -> list[Room]:
    with get_session_context() as session:
        return list(session.exec(select(Room).order_by(Room.id)).all())


def create_room(name: str, description: str, bartender_id: Optional[int] = None) -> Room:
    """
    Create a room.

    Raises:
        ConflictError: a room with that name (any case) exists
    """
    if get_room_by_name(name) is not None:
        raise ConflictError("Room already exists")

    with get_session_context() as session:
        room = Room(name=name.strip(), description=description, bartender_id=bartender_id)
        session.add(room)
        session.commit()
        session.refresh(room)
        return room


def bartender_for_room(room_id: int) -> Optional[Bartender]:
    """
    Resident bartender of a room.

    Falls back to the bartender sharing the room's id, then to the first
    bartender, so every room has someone behind the counter.
    """
    with get_session_context() as session:
        room = session.get(Room, room_id)
        if room is not None and room.bartender_id is not None:
            bartender = session.get(Bartender, room.bartender_id)
            if bartender is not None:
                return bartender

        bartender = session.get(Bartender, room_id)
        if bartender is not None:
            return bartender

        return session.exec(select(Bartender).order_by(Bartender.id)).first()


# === Messages ===

def create_message(
    room_id: int,
    content: str,
    *,
    type: MessageKind = MessageKind.USER,
    user_id: Optional[int] = None,
    bartender_id: Optional[int] = None,
) -> Message:
    with get_session_context() as session:
        message = Message(
            room_id=room_id,
            content=content,
            type=MessageKind(type).value,
            user_id=user_id,
            bartender_id=bartender_id,
        )
        session.add(message)
        session.commit()
        session.refresh(message)
        return message


def create_system_message(room_id: int, content: str) -> Message:
    return create_message(room_id, content, type=MessageKind.SYSTEM)


def get_messages_by_room(room_id: int, limit: int = 50) -> list[Message]:
    """
    Most recent messages of a room.

    Returns:
        Up to `limit` messages, oldest first
    """
    with get_session_context() as session:
        statement = (
            select(Message)
            .where(Message.room_id == room_id)
            .order_by(desc(Message.timestamp), desc(Message.id))
            .limit(limit)
        )
        recent = session.exec(statement).all()
        return list(reversed(recent))
