"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Process configuration. All values come from environment variables.

    The assistant's persona (name, custom instructions) is not configured
    here; it lives in the ``assistant_settings`` table so it can be edited
    at runtime.
    """

    # Anthropic
    anthropic_api_key: str = Field(default="")
    claude_model: str = Field(default="claude-sonnet-4-5-20250929")
    max_completion_tokens: int = Field(default=8192)

    # Google
    google_credentials_path: str = Field(default="credentials.json")
    google_token_path: Path = Field(default=Path("auth_tokens/google_auth_token.json"))

    # Database
    database_path: Path = Field(default=Path("data/modern.db"))

    # Turso (hosted libSQL). When set, overrides local database_path
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Context enrichment
    enrichment_email_limit: int = Field(default=5)
    enrichment_calendar_days: int = Field(default=7)

    # HTTP server
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=5000)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()
