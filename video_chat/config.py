"""Application configuration using pydantic settings management.

Values are loaded from environment variables (or an .env file) and
exposed through the cached `get_settings()` accessor.
"""

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Proxy configuration loaded from env or defaults."""

    # Memories.ai
    memories_ai_api_key: str = Field(default="", alias="MEMORIES_AI_API_KEY")
    memories_ai_base_url: str = Field(default="", alias="MEMORIES_AI_BASE_URL")
    upstream_timeout: float = Field(default=60.0, alias="UPSTREAM_TIMEOUT")

    # Public URL of this app, used to build the webhook callback
    public_app_url: str = Field(default="http://localhost:8000", alias="PUBLIC_APP_URL")

    max_upload_bytes: int = Field(default=100 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    @property
    def callback_url(self) -> str:
        """Webhook URL handed to Memories.ai for status notifications."""
        return f"{self.public_app_url.rstrip('/')}/webhook"

    @property
    def max_upload_mb(self) -> int:
        return self.max_upload_bytes // (1024 * 1024)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | None = None) -> None:
    if level is None:
        level = get_settings().log_level
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
