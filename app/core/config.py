from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=[".env", ".env.development"],
        case_sensitive=False,
        extra="ignore",
    )

    gemini_api_key: str = Field(validation_alias=AliasChoices("gemini_api_key", "gem"))
    magic_hour_api_key: str = Field(validation_alias=AliasChoices("magic_hour_api_key", "magic"))
    minimax_api_key: Optional[str] = None
    replicate_api_token: Optional[str] = None

    text_provider: str = "gemini"
    audio_provider: str = "gemini"
    image_provider: str = "magichour"
    video_provider: str = "magichour"

    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_text_model: str = "gemini-2.0-flash"
    gemini_tts_model: str = "gemini-2.5-flash-preview-tts"
    gemini_tts_voice: str = "Kore"

    magic_hour_base_url: str = "https://api.magichour.ai/v1"

    minimax_base_url: str = "https://api.minimax.io/v1"
    minimax_video_model: str = "MiniMax-Hailuo-02"

    replicate_image_model: str = "black-forest-labs/flux-schnell"

    http_timeout: float = 30.0

    image_poll_interval: float = 5.0
    image_poll_timeout: float = 300.0
    video_poll_interval: float = 10.0
    video_poll_timeout: float = 600.0
    poll_max_interval: float = 60.0
    poll_backoff_multiplier: float = 1.5
    poll_jitter: float = 0.2
    poll_max_attempts: int = 60

    disconnect_check_interval: float = 1.0

    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    @model_validator(mode="after")
    def check_selected_provider_keys(self) -> "Settings":
        if self.video_provider.lower() == "minimax" and not self.minimax_api_key:
            raise ValueError("MINIMAX_API_KEY is required when VIDEO_PROVIDER=minimax")
        if self.image_provider.lower() == "replicate" and not self.replicate_api_token:
            raise ValueError("REPLICATE_API_TOKEN is required when IMAGE_PROVIDER=replicate")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
