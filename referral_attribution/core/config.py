from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_env: str = Field(default="dev", alias="APP_ENV")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    store_backend: str = Field(default="memory", alias="STORE_BACKEND")
    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    database_auto_create: bool = Field(default=True, alias="DATABASE_AUTO_CREATE")

    short_link_base_url: str = Field(
        default="https://links.example.com",
        alias="SHORT_LINK_BASE_URL",
    )
    attribution_token_secret: str | None = Field(default=None, alias="ATTRIBUTION_TOKEN_SECRET")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
