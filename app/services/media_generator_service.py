import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError as PydanticValidationError

from app.core.exceptions import MalformedResponse, ProviderError
from app.models.job import JobUpdate
from app.schemas.generation import ImageOptions, VideoOptions

logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class TextGeneratorService(ABC):
    """Synchronous prompt-to-text generation."""

    name: str

    @abstractmethod
    async def generate_text(self, prompt: str) -> str:
        pass


class AudioGeneratorService(ABC):
    """Synchronous prompt-to-speech generation."""

    name: str

    @abstractmethod
    async def generate_audio(self, prompt: str) -> "AudioPayload":
        pass


class AudioPayload(BaseModel):
    """Either inline audio bytes (base64) or a URL the browser can fetch.

    Gemini answers inline; ``url`` is for backends that host the rendered file.
    """

    mime_type: str = "audio/wav"
    data_base64: Optional[str] = None
    url: Optional[str] = None


class MediaGeneratorService(ABC):
    """Abstract interface for providers that render media as an async job."""

    name: str

    @abstractmethod
    async def submit(self, prompt: str, options: Union[ImageOptions, VideoOptions]) -> str:
        """
        Start a generation job on the provider.

        Args:
            prompt: The text prompt for media generation
            options: Media specific parameters (count, orientation, duration, name)

        Returns:
            The provider's job identifier
        """
        pass

    @abstractmethod
    async def get_status(self, job_id: str) -> JobUpdate:
        """
        Fetch the job's current status from the provider.

        Raises:
            ProviderError: the status endpoint answered with a non-2xx code
            MalformedResponse: the payload did not match the expected shape
        """
        pass


class HttpProvider:
    """Shared request plumbing for providers reached over plain HTTP."""

    name = "http"

    def __init__(self, base_url: str, http_client: httpx.AsyncClient):
        self.base_url = base_url.rstrip("/")
        self.http_client = http_client

    def _headers(self) -> Dict[str, str]:
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        schema: Type[PayloadT],
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> PayloadT:
        url = f"{self.base_url}{path}"
        try:
            response = await self.http_client.request(
                method, url, json=json, params=params, headers=self._headers()
            )
        except httpx.HTTPError as e:
            logger.error(f"{self.name} request to {path} failed: {e!r}")
            raise ProviderError(f"{self.name} is unreachable: {e}", provider=self.name) from e

        if response.is_error:
            message = self._error_message(response)
            logger.error(f"{self.name} returned {response.status_code} for {path}: {message}")
            raise ProviderError(message, provider=self.name, upstream_status=response.status_code)

        return self._parse(response, schema)

    def _parse(self, response: httpx.Response, schema: Type[PayloadT]) -> PayloadT:
        try:
            return schema.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            logger.error(f"Unexpected {self.name} payload for {schema.__name__}: {e}")
            raise MalformedResponse(f"Unexpected response from {self.name}") from e

    def _error_message(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None

        detail = None
        if isinstance(body, dict):
            detail = body.get("error") or body.get("message")
            if isinstance(detail, dict):
                detail = detail.get("message")
        return f"{self.name} request failed: {detail or response.reason_phrase}"
