"""Runtime settings and environment loading utilities."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_PATH = Path(".env")


class ViscompSettings(BaseSettings):
    """Service connection overrides loaded from environment variables or .env files."""

    model_config = SettingsConfigDict(
        env_file=_ENV_PATH,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_url: str | None = Field(default=None, alias="VISCOMP_API_URL")
    api_token: SecretStr | None = Field(default=None, alias="VISCOMP_API_TOKEN")
    project: str | None = Field(default=None, alias="VISCOMP_PROJECT")

    def token_value(self) -> str | None:
        """Return the bearer token as plain text, if configured."""
        if self.api_token is None:
            return None
        return self.api_token.get_secret_value() or None


@lru_cache(maxsize=1)
def get_settings() -> ViscompSettings:
    """Return cached settings loaded from the environment."""
    return ViscompSettings()
