"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "RowSync"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Rowing monitor ---
    device_address: str = "rower.local"  # mDNS name; AP mode is 192.168.4.1
    device_connect_timeout_s: float = 5.0
    device_read_timeout_s: float = 30.0
    device_write_timeout_s: float = 10.0

    # --- Health store ---
    health_lookback_days: int = 365
    workout_title: str = "Rowing Session"
    health_store_permissions_granted: bool = True  # in-memory store only

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
