import logging
from dataclasses import dataclass
from typing import Tuple

import httpx

from app.core.config import Settings
from app.services.fake_media_generator_service import (
    FakeAudioGeneratorService,
    FakeMediaGeneratorService,
    FakeTextGeneratorService,
)
from app.services.gemini_service import GeminiService
from app.services.job_poller import JobPoller, PollPolicy
from app.services.magic_hour_service import MagicHourImageService, MagicHourVideoService
from app.services.media_generator_service import (
    AudioGeneratorService,
    MediaGeneratorService,
    TextGeneratorService,
)
from app.services.minimax_service import MinimaxVideoService
from app.services.replicate_service import ReplicateImageService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderRegistry:
    """One client object per media type, built once at startup."""

    text: TextGeneratorService
    audio: AudioGeneratorService
    image: MediaGeneratorService
    video: MediaGeneratorService


class MediaGeneratorFactory:
    """Factory for creating provider clients from configuration."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self.settings = settings
        self.http_client = http_client
        self._gemini = None

    def build(self) -> ProviderRegistry:
        registry = ProviderRegistry(
            text=self.text_service(),
            audio=self.audio_service(),
            image=self.image_service(),
            video=self.video_service(),
        )
        logger.info(
            f"Providers: text={registry.text.name} audio={registry.audio.name} "
            f"image={registry.image.name} video={registry.video.name}"
        )
        return registry

    def gemini(self) -> GeminiService:
        if self._gemini is None:
            self._gemini = GeminiService(
                api_key=self.settings.gemini_api_key,
                base_url=self.settings.gemini_base_url,
                http_client=self.http_client,
                text_model=self.settings.gemini_text_model,
                tts_model=self.settings.gemini_tts_model,
                voice=self.settings.gemini_tts_voice,
            )
        return self._gemini

    def text_service(self) -> TextGeneratorService:
        provider = self.settings.text_provider.lower()
        if provider == "fake":
            return FakeTextGeneratorService()
        if provider != "gemini":
            logger.warning(f"Unknown text provider '{provider}', defaulting to Gemini")
        return self.gemini()

    def audio_service(self) -> AudioGeneratorService:
        provider = self.settings.audio_provider.lower()
        if provider == "fake":
            return FakeAudioGeneratorService()
        if provider != "gemini":
            logger.warning(f"Unknown audio provider '{provider}', defaulting to Gemini")
        return self.gemini()

    def image_service(self) -> MediaGeneratorService:
        provider = self.settings.image_provider.lower()
        if provider == "replicate":
            return ReplicateImageService(
                api_token=self.settings.replicate_api_token,
                model=self.settings.replicate_image_model,
            )
        if provider == "fake":
            return FakeMediaGeneratorService(media_type="image")
        if provider != "magichour":
            logger.warning(f"Unknown image provider '{provider}', defaulting to Magic Hour")
        return MagicHourImageService(
            api_key=self.settings.magic_hour_api_key,
            base_url=self.settings.magic_hour_base_url,
            http_client=self.http_client,
        )

    def video_service(self) -> MediaGeneratorService:
        provider = self.settings.video_provider.lower()
        if provider == "minimax":
            return MinimaxVideoService(
                api_key=self.settings.minimax_api_key,
                base_url=self.settings.minimax_base_url,
                http_client=self.http_client,
                model=self.settings.minimax_video_model,
            )
        if provider == "fake":
            return FakeMediaGeneratorService(media_type="video")
        if provider != "magichour":
            logger.warning(f"Unknown video provider '{provider}', defaulting to Magic Hour")
        return MagicHourVideoService(
            api_key=self.settings.magic_hour_api_key,
            base_url=self.settings.magic_hour_base_url,
            http_client=self.http_client,
        )


def build_pollers(settings: Settings) -> Tuple[JobPoller, JobPoller]:
    """Image and video pollers sharing the backoff settings."""
    shared = dict(
        max_interval=settings.poll_max_interval,
        multiplier=settings.poll_backoff_multiplier,
        jitter=settings.poll_jitter,
        max_attempts=settings.poll_max_attempts,
    )
    image = JobPoller(PollPolicy(interval=settings.image_poll_interval, timeout=settings.image_poll_timeout, **shared))
    video = JobPoller(PollPolicy(interval=settings.video_poll_interval, timeout=settings.video_poll_timeout, **shared))
    return image, video
