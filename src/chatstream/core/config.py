from __future__ import annotations

from functools import lru_cache
from typing import Optional
from pathlib import Path

from pydantic import Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chatstream.utils.prompts import CHAT_SYSTEM_PROMPT

_ENV_PATH = Path(__file__).resolve().parents[3] / ".env"


class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=str(_ENV_PATH) if _ENV_PATH.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==== Model / Provider API keys ====
    openai_api_key: Optional[SecretStr] = Field(default=None, alias="OPENAI_API_KEY")
    google_api_key: Optional[SecretStr] = Field(default=None, alias="GOOGLE_API_KEY")

    # ==== Generation ====
    chat_model: str = Field(default="openai/gpt-4o-mini", alias="CHAT_MODEL")
    chat_temperature: float = Field(default=0.7, alias="CHAT_TEMPERATURE")
    chat_max_tokens: Optional[int] = Field(default=None, alias="CHAT_MAX_TOKENS")
    # empty SYSTEM_PROMPT disables it
    system_prompt: Optional[str] = Field(default=CHAT_SYSTEM_PROMPT, alias="SYSTEM_PROMPT")
    history_window: int = Field(default=20, ge=0, alias="HISTORY_WINDOW")

    # ==== Streaming ====
    stream_write_timeout: float = Field(default=5.0, gt=0, alias="STREAM_WRITE_TIMEOUT")
    stream_ping_seconds: int = Field(default=15, gt=0, alias="STREAM_PING_SECONDS")

    # ==== Database ====
    database_url: str = Field(
        default="sqlite+aiosqlite:///./chatstream.db", alias="DB_URL"
    )

    # ==== App settings ====
    env: str = Field(default="local", alias="ENV")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # ==== App server ====
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")

    # ==== JWT Auth ====
    jwt_secret: Optional[SecretStr] = Field(default=None, alias="JWT_SECRET")
    access_expire_seconds: int = Field(default=3600, alias="ACCESS_EXPIRE_SECONDS")
    jwt_alg: str = Field(default="HS256", alias="JWT_ALG")
    auth_required: bool = Field(default=True, alias="AUTH_REQUIRED")

    # ==== Derived / helpers ====
    @computed_field
    def is_production(self) -> bool:
        return self.env.lower() in {"prod", "production"}

    @computed_field
    def is_local(self) -> bool:
        return self.env.lower() in {"dev", "local", "development"}

    def require_jwt_secret(self) -> str:
        if self.jwt_secret is None:
            raise RuntimeError(
                "JWT_SECRET is not set. Please configure it in your environment/.env."
            )
        return self.jwt_secret.get_secret_value()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
