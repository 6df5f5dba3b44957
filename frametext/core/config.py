from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    # Transport
    http_timeout_seconds: float = 30.0

    # Async (polling) vendors: poll_max_attempts x poll_interval_seconds
    poll_interval_seconds: float = 1.0
    poll_max_attempts: int = 10

    # Free-tier fallback provider (OCR.space public demo key)
    fallback_api_key: str = "helloworld"

    # Optional JSON snapshot used when a request carries no provider config
    provider_config_path: str | None = None

    # Vendor base URLs
    google_vision_url: str = "https://vision.googleapis.com/v1"
    mathpix_url: str = "https://api.mathpix.com/v3"
    ocr_space_url: str = "https://api.ocr.space"


settings = Settings()
