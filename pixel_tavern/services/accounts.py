"""
Account service: users, presence, authentication and currency.

Usernames and emails are matched case-insensitively. Passwords are stored
as "salt$digest" (PBKDF2-SHA256) and compared in constant time.
"""
from typing import Optional
import hashlib
import hmac
import secrets

from sqlmodel import select, func

from pixel_tavern.db.models import User
from pixel_tavern.deps import get_session_context
from pixel_tavern.errors import ConflictError, NotFoundError


SILVER_PER_GOLD = 100
PBKDF2_ITERATIONS = 120_000


# === Password Hashing ===

def hash_password(password: str) -> str:
    """
    Hash password with a random salt.
    Format: "salt$hash"
    """
    if not isinstance(password, str):
        raise ValueError("password must be a string")

    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS
    ).hex()
    return f"{salt}${digest}"


def verify_password(plain_password: str, stored_hash: Optional[str]) -> bool:
    """Verify password against stored "salt$hash"."""
    if not stored_hash:
        return False
    try:
        salt, digest = stored_hash.split("$", 1)
    except ValueError:
        return False

    check = hashlib.pbkdf2_hmac(
        "sha256", plain_password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS
    ).hex()
    return hmac.compare_digest(check, digest)


# === Users ===

def get_user(user_id: int) -> Optional[User]:
    with get_session_context() as session:
        return session.get(User, user_id)


def require_user(user_id: int) -> User:
    """Like get_user, but raises NotFoundError."""
    user = get_user(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def get_user_by_username(username: str) -> Optional[User]:
    with get_session_context() as session:
        statement = select(User).where(func.lower(User.username) == username.strip().lower())
        return session.exec(statement).first()


def get_user_by_email(email: str) -> Optional[User]:
    with get_session_context() as session:
        statement = select(User).where(func.lower(User.email) == email.strip().lower())
        return session.exec(statement).first()


def create_user(
    username: str,
    avatar: str = "knight",
    *,
    room_id: int = 1,
    email: Optional[str] = None,
    password_hash: Optional[str] = None,
    online: bool = True,
) -> User:
    """
    Create a user with default level and purse (100 silver, 0 gold).

    Raises:
        ConflictError: username already exists
    """
    if get_user_by_username(username) is not None:
        raise ConflictError("Username already taken")

    with get_session_context() as session:
        user = User(
            username=username.strip(),
            avatar=avatar,
            room_id=room_id,
            email=email,
            password_hash=password_hash,
            online=online,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user


def _update_user(user_id: int, **fields) -> Optional[User]:
    with get_session_context() as session:
        user = session.get(User, user_id)
        if user is None:
            return None
        for key, value in fields.items():
            setattr(user, key, value)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user


def update_user_room(user_id: int, room_id: int) -> Optional[User]:
    return _update_user(user_id, room_id=room_id)


def update_user_status(user_id: int, online: bool) -> Optional[User]:
    return _update_user(user_id, online=online)


def update_user_password(user_id: int, password_hash: str) -> Optional[User]:
    return _update_user(user_id, password_hash=password_hash)


def set_user_gold(user_id: int, gold: int) -> User:
    user = _update_user(user_id, gold=gold)
    if user is None:
        raise NotFoundError("User not found")
    return user


def set_user_level(user_id: int, level: int) -> User:
    user = _update_user(user_id, level=level)
    if user is None:
        raise NotFoundError("User not found")
    return user


def get_online_users(room_id: Optional[int] = None) -> list[User]:
    """Online users, optionally restricted to one room."""
    with get_session_context() as session:
        statement = select(User).where(User.online == True)  # noqa: E712
        if room_id is not None:
            statement = statement.where(User.room_id == room_id)
        return list(session.exec(statement.order_by(User.username)).all())


def reset_online_status() -> int:
    """
    Mark every user offline. Run at startup, before any socket connects.

    Returns:
        Number of users that were flagged online
    """
    with get_session_context() as session:
        users = session.exec(select(User).where(User.online == True)).all()  # noqa: E712
        for user in users:
            user.online = False
            session.add(user)
        session.commit()
        return len(users)


# === Authentication ===

def register_user(
    username: str,
    password: str,
    email: Optional[str] = None,
    avatar: str = "knight",
) -> User:
    """
    Create an account with credentials.

    Raises:
        ConflictError: username or email already in use
    """
    if get_user_by_username(username) is not None:
        raise ConflictError("Username already taken")
    if email and get_user_by_email(email) is not None:
        raise ConflictError("Email already registered")

    return create_user(
        username,
        avatar,
        email=email,
        password_hash=hash_password(password),
    )


def verify_user(username: str, password: str) -> Optional[User]:
    """
    Check credentials and mark the user online.

    Returns:
        The user, or None when the name is unknown, the account has no
        password (guest), or the password is wrong
    """
    user = get_user_by_username(username)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return update_user_status(user.id, True)


def change_password(user_id: int, current_password: str, new_password: str) -> bool:
    """
    Replace a user's password after checking the current one.

    Raises:
        NotFoundError: unknown user

    Returns:
        False when current_password is wrong
    """
    user = require_user(user_id)
    if not verify_password(current_password, user.password_hash):
        return False
    update_user_password(user_id, hash_password(new_password))
    return True


# === Currency ===

def get_currency(user_id: int) -> dict[str, int]:
    user = require_user(user_id)
    return {"silver": user.silver, "gold": user.gold}


def add_currency(user_id: int, silver: int) -> dict[str, int]:
    """
    Add silver; every full 100 silver rolls over into 1 gold.

    Raises:
        NotFoundError: unknown user
    """
    if silver < 0:
        raise ValueError("silver must be non-negative")

    with get_session_context() as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        total_silver = user.silver + silver
        user.gold += total_silver // SILVER_PER_GOLD
        user.silver = total_silver % SILVER_PER_GOLD
        session.add(user)
        session.commit()
        return {"silver": user.silver, "gold": user.gold}


def spend_currency(user_id: int, silver: int) -> Optional[dict[str, int]]:
    """
    Spend silver from the user's total wealth, breaking gold as needed.

    Returns:
        Remaining purse, or None if the user cannot afford it

    Raises:
        NotFoundError: unknown user
    """
    if silver < 0:
        raise ValueError("silver must be non-negative")

    with get_session_context() as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        total = user.gold * SILVER_PER_GOLD + user.silver
        if total < silver:
            return None

        remaining = total - silver
        user.gold = remaining // SILVER_PER_GOLD
        user.silver = remaining % SILVER_PER_GOLD
        session.add(user)
        session.commit()
        return {"silver": user.silver, "gold": user.gold}
