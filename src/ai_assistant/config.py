"""Configuration settings for the application."""

from typing import List

from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    DATA_DIR: str = "./data"
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # LLM Configuration
    PROVIDER: str = "openai"  # Current provider; others are used as fallbacks
    PROVIDER_IDS: List[str] = ["anthropic", "openai"]
    OPENAI_API_KEY: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    OPENAI_MODEL: str | None = None
    ANTHROPIC_MODEL: str | None = None
    OPENAI_BASE_URL: str | None = None
    ANTHROPIC_BASE_URL: str | None = None
    REQUEST_TIMEOUT: float = 60.0

    # Agent Configuration
    MAX_STEP_RETRIES: int = 3
    MAX_AGENT_STEPS: int = 10

    # Message store
    STORE: str = "jsonl"  # Options: jsonl, memory


settings = Settings()
