"""Pydantic settings configuration for the relay."""

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Valid logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8787
    log_level: LogLevel = LogLevel.INFO

    # Upstream LLM API
    llm_endpoint: str = ""
    llm_token: str = ""
    llm_model: str = ""
    upstream_timeout: float = 60.0

    # Capacity of the byte channel between the pump task and the response body
    channel_max_chunks: int = 64

    # Observability settings
    audit_enabled: bool = True
    audit_log_level: str = "INFO"

    # Probe settings
    pingdom_api_token: str = ""
    pingdom_api_base: str = "https://api.pingdom.com/api/3.1"
    probe_target_host: str = ""
    probe_target_path: str = "/"
    probe_sample_size: int = 30
    probe_timeout: float = 30.0
    regions_path: str | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
