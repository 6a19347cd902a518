"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from . import schema


class Settings(BaseSettings):
    """Application settings loaded from ADPLAY_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="ADPLAY_", env_file=".env", extra="ignore")

    # AWS
    aws_region: str = "ap-southeast-2"
    aws_profile: str | None = None
    aws_endpoint_url: str | None = None  # e.g. http://localhost:4566 for LocalStack

    # Play telemetry table
    plays_table: str = schema.DEFAULT_PLAYS_TABLE
    device_index: str = schema.DEVICE_INDEX_NAME
    ad_index: str = schema.AD_INDEX_NAME

    # Data labels table
    labels_table: str = schema.DEFAULT_LABELS_TABLE
    channel_index: str = schema.CHANNEL_INDEX_NAME

    # Media bucket
    media_bucket: str = schema.DEFAULT_MEDIA_BUCKET
    reserved_prefixes: list[str] = list(schema.RESERVED_PREFIXES)
    presigned_url_ttl: int = 3600

    # Caching (seconds)
    device_cache_ttl: float = 30.0
    aggregate_cache_ttl: float = 60.0

    # Upstream calls
    call_timeout: float = 10.0
    max_attempts: int = 3
    max_pages: int = 1000

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 3001
    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Settings from the environment, read once per process."""
    return Settings()
