import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from app.core.exceptions import GenerationError, ValidationError
from app.models.job import GenerationJob, MediaType
from app.schemas.generation import GenerationRequest, GenerationResult, ImageOptions, VideoOptions
from app.services.job_poller import JobPoller
from app.services.media_generator_factory import ProviderRegistry
from app.services.media_generator_service import MediaGeneratorService

logger = logging.getLogger(__name__)

OptionsT = TypeVar("OptionsT", bound=BaseModel)


def _first_error(error: PydanticValidationError) -> str:
    detail = error.errors()[0]
    field = ".".join(str(part) for part in detail.get("loc", ()) if part != "__root__")
    message = detail.get("msg", "invalid value").removeprefix("Value error, ")
    return f"{field}: {message}" if field and field != "prompt" else message


def build_request(payload: Dict[str, Any], media_type: MediaType) -> GenerationRequest:
    """Turn a raw JSON/form body into a GenerationRequest, or raise ValidationError."""
    prompt = payload.get("prompt")
    if not isinstance(prompt, str):
        raise ValidationError("Prompt is required", media_type=media_type.value)
    options = {key: value for key, value in payload.items() if key != "prompt" and value not in (None, "")}
    try:
        return GenerationRequest(prompt=prompt, media_type=media_type, options=options)
    except PydanticValidationError as e:
        raise ValidationError(_first_error(e), media_type=media_type.value) from e


class GenerationService:
    """Per-media-type handlers: validate, submit, poll, map to a result.

    Holds no per-request state; one instance serves every request.
    """

    def __init__(self, providers: ProviderRegistry, image_poller: JobPoller, video_poller: JobPoller):
        self.providers = providers
        self.image_poller = image_poller
        self.video_poller = video_poller

    async def generate(self, request: GenerationRequest, cancel: Optional[asyncio.Event] = None) -> GenerationResult:
        if request.media_type == MediaType.TEXT:
            return await self.generate_text(request.prompt)
        if request.media_type == MediaType.AUDIO:
            return await self.generate_audio(request.prompt)
        if request.media_type == MediaType.IMAGE:
            return await self.generate_image(request.prompt, request.options, cancel)
        return await self.generate_video(request.prompt, request.options, cancel)

    async def generate_text(self, prompt: str) -> GenerationResult:
        prompt = self._require_prompt(prompt, MediaType.TEXT)
        provider = self.providers.text
        logger.info(f"Generating text with {provider.name}")
        with self._tagged(MediaType.TEXT):
            text = await provider.generate_text(prompt)
        return GenerationResult(type=MediaType.TEXT, text=text)

    async def generate_audio(self, prompt: str) -> GenerationResult:
        prompt = self._require_prompt(prompt, MediaType.AUDIO)
        provider = self.providers.audio
        logger.info(f"Generating audio with {provider.name}")
        with self._tagged(MediaType.AUDIO):
            audio = await provider.generate_audio(prompt)
        return GenerationResult(
            type=MediaType.AUDIO,
            audio_url=audio.url,
            audio_buffer=audio.data_base64,
            mime_type=audio.mime_type,
        )

    async def generate_image(
        self,
        prompt: str,
        options: Optional[Dict[str, Any]] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        prompt = self._require_prompt(prompt, MediaType.IMAGE)
        parsed = self._parse_options(ImageOptions, options, MediaType.IMAGE)
        url = await self._run_job(self.providers.image, self.image_poller, MediaType.IMAGE, prompt, parsed, cancel)
        return GenerationResult(type=MediaType.IMAGE, image_url=url)

    async def generate_video(
        self,
        prompt: str,
        options: Optional[Dict[str, Any]] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        prompt = self._require_prompt(prompt, MediaType.VIDEO)
        parsed = self._parse_options(VideoOptions, options, MediaType.VIDEO)
        url = await self._run_job(self.providers.video, self.video_poller, MediaType.VIDEO, prompt, parsed, cancel)
        return GenerationResult(type=MediaType.VIDEO, video_url=url)

    async def _run_job(
        self,
        provider: MediaGeneratorService,
        poller: JobPoller,
        media_type: MediaType,
        prompt: str,
        options: BaseModel,
        cancel: Optional[asyncio.Event],
    ) -> str:
        with self._tagged(media_type):
            job_id = await provider.submit(prompt, options)
            job = GenerationJob(id=job_id, provider=provider.name, media_type=media_type)
            return await poller.poll(job, provider.get_status, cancel)

    @staticmethod
    def _require_prompt(prompt: Optional[str], media_type: MediaType) -> str:
        if prompt is None or not prompt.strip():
            raise ValidationError("Prompt is required", media_type=media_type.value)
        return prompt.strip()

    @staticmethod
    def _parse_options(
        schema: Type[OptionsT], options: Optional[Dict[str, Any]], media_type: MediaType
    ) -> OptionsT:
        try:
            return schema.model_validate(options or {})
        except PydanticValidationError as e:
            raise ValidationError(_first_error(e), media_type=media_type.value) from e

    @staticmethod
    @contextmanager
    def _tagged(media_type: MediaType) -> Iterator[None]:
        """Stamp the media type on GenerationErrors raised inside the block."""
        try:
            yield
        except GenerationError as e:
            if e.media_type is None:
                e.media_type = media_type.value
            raise
