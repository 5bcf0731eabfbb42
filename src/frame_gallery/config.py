"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

MAX_PORTFOLIOS = 10
MAX_PHOTOS_PER_PORTFOLIO = 10
MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024


class Settings(BaseSettings):
    """Server settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    storage_bucket: str = "portfolio-images"
    kv_table: str = "kv_store"
    public_base_url: str = "https://framethegallery.xyz"
    default_preview_image: str = "https://framethegallery.xyz/og-image.png"
    max_upload_bytes: int = MAX_FILE_SIZE_BYTES
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


class ClientSettings(BaseSettings):
    """Settings for the portfolio client session."""

    api_base_url: str = "http://localhost:8000"
    local_storage_path: str = ".frame_gallery/local_storage.json"
    local_storage_quota_bytes: int = 5 * 1024 * 1024
    identity_timeout_seconds: float = 5.0
    max_portfolios: int = MAX_PORTFOLIOS
    max_photos_per_portfolio: int = MAX_PHOTOS_PER_PORTFOLIO
    max_file_size_bytes: int = MAX_FILE_SIZE_BYTES

    model_config = SettingsConfigDict(
        env_prefix="FRAME_GALLERY_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
