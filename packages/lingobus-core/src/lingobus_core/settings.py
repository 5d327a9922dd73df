"""Runtime secrets loaded from the environment or a .env file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_PATH = Path(".env")


class LingobusSettings(BaseSettings):
    """Credentials for the hosted collaborator APIs."""

    model_config = SettingsConfigDict(
        env_file=_ENV_PATH,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Google Cloud Vision and Translation
    google_api_key: SecretStr | None = Field(default=None, alias="GOOGLE_API_KEY")

    # Twilio SMS and voice
    twilio_account_sid: str | None = Field(default=None, alias="TWILIO_ACCOUNT_SID")
    twilio_auth_token: SecretStr | None = Field(
        default=None, alias="TWILIO_AUTH_TOKEN"
    )

    @property
    def has_google(self) -> bool:
        """Return True when a Google API key is configured."""
        return self.google_api_key is not None

    @property
    def has_twilio(self) -> bool:
        """Return True when Twilio credentials are configured."""
        return (
            self.twilio_account_sid is not None
            and self.twilio_auth_token is not None
        )


@lru_cache(maxsize=1)
def get_settings() -> LingobusSettings:
    """Return cached settings loaded from the environment."""
    return LingobusSettings()
