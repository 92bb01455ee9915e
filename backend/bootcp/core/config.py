"""Application configuration loaded from environment variables."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Control plane settings.

    All settings can be overridden via environment variables or .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "bootcp"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Persistence
    PERSIST_MODE: Literal["json", "yaml", "sql"] = "json"
    PERSIST_DBNAME: str = "bootcp"  # File backends append .json / .yml
    DATABASE_URL: str = "sqlite:///./bootcp.db"  # Only used by the sql backend

    # Images
    IMAGE_PATH: str = "./image"
    MK_PATH_PREFIX: str = "mk"  # path_prefix marking minimal runtime images

    # Node lifecycle (seconds)
    REGISTER_TIMEOUT: int = 120
    NODE_EXPIRE_TIMEOUT: int = 300

    # Optional inputs
    CHECKIN_ACTION_FILE: Optional[str] = None  # YAML mapping of uuid -> forced command
    SYSTEM_TAG_RULES_DIR: Optional[str] = None  # Directory of built-in *.json tag rules


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
