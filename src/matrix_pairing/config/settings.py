"""Runtime settings loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, HttpUrl, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

NonEmptyStr = Annotated[str, Field(min_length=1)]
PortInt = Annotated[int, Field(gt=0, lt=65536)]
PositiveInt = Annotated[int, Field(gt=0)]


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    matrix_homeserver_url: HttpUrl = Field(validation_alias="MATRIX_HOMESERVER_URL")
    matrix_bot_user_id: NonEmptyStr = Field(validation_alias="MATRIX_BOT_USER_ID")
    matrix_access_token: NonEmptyStr | None = Field(
        default=None,
        validation_alias="MATRIX_ACCESS_TOKEN",
    )
    matrix_username: NonEmptyStr | None = Field(default=None, validation_alias="MATRIX_USERNAME")
    matrix_password: NonEmptyStr | None = Field(default=None, validation_alias="MATRIX_PASSWORD")
    matrix_device_id: NonEmptyStr = Field(
        default="matrix-pairing-daemon",
        validation_alias="MATRIX_DEVICE_ID",
    )
    matrix_room_topic: str = Field(default="", validation_alias="MATRIX_ROOM_TOPIC")
    matrix_sync_timeout_ms: PositiveInt = Field(
        default=30_000,
        validation_alias="MATRIX_SYNC_TIMEOUT_MS",
    )
    database_url: NonEmptyStr = Field(validation_alias="DATABASE_URL")
    pairing_api_token: NonEmptyStr = Field(validation_alias="PAIRING_API_TOKEN")
    pairing_api_host: NonEmptyStr = Field(default="127.0.0.1", validation_alias="PAIRING_API_HOST")
    pairing_api_port: PortInt = Field(default=8056, validation_alias="PAIRING_API_PORT")
    lang_dir: Path | None = Field(default=None, validation_alias="LANG_DIR")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @model_validator(mode="after")
    def _require_matrix_credentials(self) -> Settings:
        if self.matrix_access_token is not None:
            return self
        if self.matrix_username is None or self.matrix_password is None:
            raise ValueError(
                "MATRIX_ACCESS_TOKEN or both MATRIX_USERNAME and MATRIX_PASSWORD are required"
            )
        return self


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]
