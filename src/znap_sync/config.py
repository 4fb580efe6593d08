"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_key: str
    backend_base_url: str
    debug_token: str
    data_dir: Path = Path(".znap")
    cameras_slot: str = "znap-cameras"
    guests_slot: str = "znap-guest-sessions"
    photo_bucket: str = "camera-photos"
    remote_timeout_seconds: float = 8.0
    probe_timeout_seconds: float = 2.0
    probe_interval_seconds: float = 30.0
    probe_max_age_seconds: float = 60.0
    host: str = "127.0.0.1"
    port: int = 8000
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
