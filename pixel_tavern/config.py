"""
Single source of truth for application configuration.
All settings are typed and loaded from environment variables.
"""
from functools import lru_cache
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with graceful degradation.

    - If OPENROUTER_API_KEY is missing, bartenders fall back to canned lines
    - All settings have sensible defaults for local development
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    # === API Configuration ===
    HOST: str = Field(default="0.0.0.0", description="Bind address for `cli.py serve`")
    PORT: int = Field(default=5000, ge=1, le=65535)
    ALLOWED_ORIGINS: list[str] = Field(
        default=["http://localhost:5000", "http://localhost:5173"],
        description="CORS allowed origins"
    )
    DEBUG: bool = Field(
        default=False,
        description="Expose exception details in 500 responses"
    )
    CLIENT_DIST_DIR: str = Field(
        default="./client/dist",
        description="Built browser client served at / when present"
    )

    # === Database ===
    DATABASE_URL: str = Field(
        default="sqlite:///./data/pixel_tavern.db",
        description="SQLite database path"
    )

    # === OpenRouter (optional bartender dialogue) ===
    OPENROUTER_API_KEY: Optional[str] = Field(
        default=None,
        description="OpenRouter API key for AI bartender replies (optional)"
    )
    OPENROUTER_MODEL: str = Field(
        default="meta-llama/llama-4-maverick:free",
        description="Chat completion model served through OpenRouter"
    )
    OPENROUTER_BASE_URL: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenRouter OpenAI-compatible endpoint"
    )
    OPENROUTER_REFERER: str = Field(default="http://localhost:5000")
    OPENROUTER_TITLE: str = Field(default="Fantasy Tavern Chat")

    # === Tavern Behaviour ===
    DEFAULT_ROOM_ID: int = Field(default=1, ge=1)
    BARTENDER_REPLY_CHANCE: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Probability that a bartender answers an unaddressed chat message"
    )
    CHAT_REPLY_MIN_DELAY_SECONDS: float = Field(default=1.0, ge=0.0)
    CHAT_REPLY_MAX_DELAY_SECONDS: float = Field(default=3.0, ge=0.0)
    ORDER_RESPONSE_DELAY_SECONDS: float = Field(default=1.0, ge=0.0)
    SERVE_DELAY_SECONDS: float = Field(default=2.0, ge=0.0)
    MESSAGE_HISTORY_LIMIT: int = Field(default=50, ge=1, le=500)
    MEMORY_SENTIMENT_THRESHOLD: int = Field(
        default=5,
        ge=1,
        le=10,
        description="Absolute sentiment score at which a chat line is remembered"
    )
    MAX_MEMORY_ENTRIES: int = Field(default=50, ge=1)

    # === Retry Configuration ===
    HTTP_RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=1, le=10)
    HTTP_RETRY_WAIT_MIN_SECONDS: float = Field(default=1.0, ge=0.0)
    HTTP_RETRY_WAIT_MAX_SECONDS: float = Field(default=10.0, ge=0.0)

    @field_validator("CHAT_REPLY_MAX_DELAY_SECONDS")
    @classmethod
    def max_delay_not_below_min(cls, v: float, info) -> float:
        """Keep the reply delay window well-formed."""
        low = info.data.get("CHAT_REPLY_MIN_DELAY_SECONDS", 0.0)
        return max(v, low)

    @property
    def ai_available(self) -> bool:
        """Check if AI bartender dialogue is configured."""
        return bool(self.OPENROUTER_API_KEY)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This is the single entry point for all configuration.
    The LRU cache ensures we only parse env vars once.
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Force reload settings from environment.
    Useful for testing or when env vars change at runtime.
    """
    get_settings.cache_clear()
    return get_settings()
