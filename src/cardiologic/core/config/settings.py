"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Cardiologic server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Default to loopback to avoid accidentally exposing personal health data
    # to your LAN/WAN. Opt into `0.0.0.0` explicitly when you intend remote access.
    cardiologic_host: str = "127.0.0.1"
    cardiologic_port: int = 8001
    cardiologic_log_level: str = "info"
    # If binding to non-loopback, refuse to start unless this is set true
    # (there is currently no auth layer).
    cardiologic_allow_insecure_bind: bool = False

    # Health store
    apple_health_export_path: str = ""
    mock_history_days: int = 30

    # IANA zone name used to anchor daily statistics; blank = system local zone
    time_zone: str = ""


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
