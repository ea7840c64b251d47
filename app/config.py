"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="TubeCurator", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    youtube_api_url: HttpUrl = Field(
        default="https://www.googleapis.com/youtube/v3", alias="YOUTUBE_API_URL"
    )
    youtube_api_key: str | None = Field(default=None, alias="YOUTUBE_API_KEY")

    search_page_size: int = Field(default=24, alias="SEARCH_PAGE_SIZE", ge=1, le=50)
    default_region_code: str = Field(default="KR", alias="DEFAULT_REGION_CODE")
    request_timeout_seconds: float = Field(
        default=15.0, alias="REQUEST_TIMEOUT", gt=0, le=120
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("youtube_api_key", mode="before")
    @classmethod
    def _strip_blank_key(cls, value: object) -> object:
        """Treat blank API keys as missing."""

        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("default_region_code", mode="before")
    @classmethod
    def _normalise_region(cls, value: object) -> str:
        text = str(value or "").strip().upper()
        if len(text) != 2 or not text.isalpha():
            raise ValueError("DEFAULT_REGION_CODE must be a two-letter country code")
        return text

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
