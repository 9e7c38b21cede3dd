# backend/booking_core/config.py

from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/booking.db"
    redis_url: Optional[str] = None

    storage_backend: Literal["sql", "memory"] = "sql"

    # New bookings start as "pending" when an approval step exists
    approval_required: bool = True
    min_advance_minutes: int = 0
    max_range_days: int = 62

    request_timeout_seconds: float = 5.0
    storage_retry_attempts: int = 3
    storage_retry_backoff_seconds: float = 0.1

    # 0 = compute on every read
    slot_cache_ttl_seconds: int = 0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
