from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Rider Negotiation Service"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"

    # ─────────── DATABASE ───────────
    database_url: str

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours

    # ─────────── SERVER ───────────
    server_host: str = "0.0.0.0"
    server_port: int = 8000

    # ─────────── NEGOTIATION ───────────
    negotiation_max_attempts: int = 3
    contract_base_url: str = "https://bookings.example.com/contracts"

    # ─────────── REMINDERS ───────────
    reminder_offsets_days: List[int] = [7, 3, 1]
    reminder_check_interval_minutes: int = 60
    # days since the rider was shared / a venue proposal was made
    stall_reminder_offsets_days: List[int] = [1, 3, 7]
    enable_reminder_scheduler: bool = False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
