"""
Dependency injection for FastAPI routes.
Provides database sessions, the OpenRouter chat client, and type aliases.
"""
from typing import Annotated, Optional, Any
from contextlib import contextmanager
import httpx
from fastapi import Depends
from sqlmodel import Session
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from pixel_tavern.config import Settings, get_settings
from pixel_tavern.db.sqlite import get_engine


# === Database Dependencies ===

def get_db_session() -> Session:
    """
    Database session dependency for FastAPI routes.

    Usage:
        @app.get("/rooms")
        def list_rooms(db: DBSession):
            return db.exec(select(Room)).all()
    """
    with Session(get_engine()) as session:
        yield session


@contextmanager
def get_session_context():
    """
    Context manager for database sessions in service layer.

    Usage:
        with get_session_context() as session:
            session.add(room)
            session.commit()
    """
    with Session(get_engine()) as session:
        yield session


# === OpenRouter Client (Optional) ===

_openai_client: Optional[Any] = None


def get_openai_client() -> Optional[Any]:
    """
    Get an OpenAI-compatible client pointed at OpenRouter.

    Returns None if OPENROUTER_API_KEY is not set (graceful degradation:
    bartenders answer with canned lines instead).
    """
    global _openai_client

    settings = get_settings()
    if not settings.ai_available:
        return None

    if _openai_client is None:
        from openai import AsyncOpenAI

        _openai_client = AsyncOpenAI(
            api_key=settings.OPENROUTER_API_KEY,
            base_url=settings.OPENROUTER_BASE_URL,
            default_headers={
                "HTTP-Referer": settings.OPENROUTER_REFERER,
                "X-Title": settings.OPENROUTER_TITLE,
            },
            timeout=httpx.Timeout(30.0, connect=10.0),
            max_retries=0,
        )

    return _openai_client


def reset_openai_client() -> None:
    """Forget the cached client (after settings reload)."""
    global _openai_client
    _openai_client = None


async def chat_completion_with_retry(
    client: Any,
    messages: list[dict[str, str]],
    *,
    model: str,
    temperature: float = 0.7,
    max_tokens: int = 150,
) -> str:
    """
    Chat completion with automatic retry logic.

    Attempts and backoff come from the HTTP_RETRY_* settings.
    """
    settings = get_settings()
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(settings.HTTP_RETRY_MAX_ATTEMPTS),
        wait=wait_exponential(
            multiplier=1,
            min=settings.HTTP_RETRY_WAIT_MIN_SECONDS,
            max=settings.HTTP_RETRY_WAIT_MAX_SECONDS,
        ),
        reraise=True,
    ):
        with attempt:
            response = await client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
            content = response.choices[0].message.content if response.choices else None
            if not content:
                raise ValueError("Unexpected API response structure")
            return content.strip()


# === Type Aliases ===

DBSession = Annotated[Session, Depends(get_db_session)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
