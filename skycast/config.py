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
    """Skycast configuration. All values come from environment variables."""

    # Anthropic (chat stream + titles)
    anthropic_api_key: str = Field(default="")
    fast_model: str = Field(default="claude-haiku-4-5-20251001")
    advanced_model: str = Field(default="claude-sonnet-4-5-20250929")
    title_model: str = Field(default="claude-haiku-4-5-20251001")
    thinking_budget: int = Field(default=8000)
    max_output_tokens: int = Field(default=4096)
    web_search_max_uses: int = Field(default=5)

    # OpenAI (speech, images, video)
    openai_api_key: str = Field(default="")
    tts_model: str = Field(default="gpt-4o-mini-tts")
    image_model: str = Field(default="gpt-image-1")
    video_model: str = Field(default="sora-2")

    # Video polling
    video_poll_interval: float = Field(default=10.0)
    video_max_polls: int = Field(default=90)

    # Conversation
    location_history_limit: int = Field(default=15)
    title_fallback_length: int = Field(default=30)

    # Geolocation
    geolocation_url: str = Field(default="http://ip-api.com/json/")
    geolocation_timeout: float = Field(default=10.0)

    # Storage
    database_path: Path = Field(default=Path("data/skycast.db"))
    media_dir: Path = Field(default=Path("data/media"))

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
