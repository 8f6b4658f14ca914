from __future__ import annotations

import os
from functools import lru_cache


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    """Application configuration exposed via lazy singleton."""

    def __init__(self) -> None:
        default_db = "sqlite:///./dev.db"
        self.database_url = os.getenv("DATABASE_URL", default_db)
        self.test_database_url = os.getenv("TEST_DATABASE_URL")
        self.app_name = os.getenv("APP_NAME", "Flow")
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.cors_origins = _csv(os.getenv("CORS_ORIGINS", "*"))
        # Streaming connections
        self.stream_keepalive_seconds = float(os.getenv("STREAM_KEEPALIVE_SECONDS", "25"))
        self.stream_queue_size = int(os.getenv("STREAM_QUEUE_SIZE", "256"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
