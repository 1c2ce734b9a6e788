import replicate
import logging
from typing import Any, List, Optional

import httpx
from replicate.exceptions import ReplicateError

from app.core.exceptions import MalformedResponse, ProviderError
from app.models.job import JobStatus, JobUpdate
from app.schemas.generation import ImageOptions
from app.services.media_generator_service import MediaGeneratorService

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "starting": JobStatus.PENDING,
    "processing": JobStatus.PROCESSING,
    "succeeded": JobStatus.COMPLETE,
    "failed": JobStatus.ERROR,
    "canceled": JobStatus.ERROR,
}

_ASPECT_RATIOS = {"landscape": "16:9", "portrait": "9:16", "square": "1:1"}


class ReplicateImageService(MediaGeneratorService):
    name = "replicate"

    def __init__(self, api_token: str, model: str, client: Optional[replicate.Client] = None):
        self.client = client or replicate.Client(api_token=api_token)
        self.model = model

    async def submit(self, prompt: str, options: ImageOptions) -> str:
        input_params = {
            "prompt": prompt,
            "num_outputs": options.image_count,
            "aspect_ratio": _ASPECT_RATIOS[options.orientation],
        }
        logger.info(f"Creating Replicate prediction with model {self.model} and params: {input_params}")

        try:
            prediction = await self.client.predictions.async_create(model=self.model, input=input_params)
        except (ReplicateError, httpx.HTTPError) as e:
            logger.error(f"Error creating Replicate prediction: {str(e)}")
            raise self._provider_error(e) from e

        logger.info(f"Replicate accepted prediction {prediction.id}")
        return prediction.id

    async def get_status(self, job_id: str) -> JobUpdate:
        try:
            prediction = await self.client.predictions.async_get(job_id)
        except (ReplicateError, httpx.HTTPError) as e:
            logger.error(f"Error fetching Replicate prediction {job_id}: {str(e)}")
            raise self._provider_error(e) from e

        status = _STATUS_MAP.get(str(prediction.status).lower())
        if status is None:
            raise MalformedResponse(f"Unknown Replicate prediction status '{prediction.status}'")

        if status == JobStatus.COMPLETE:
            urls = self._output_urls(prediction.output)
            return JobUpdate(status=status, result_url=urls[0] if urls else None)

        if status == JobStatus.ERROR:
            return JobUpdate(status=status, error=str(prediction.error or prediction.status))

        return JobUpdate(status=status)

    @staticmethod
    def _output_urls(output: Any) -> List[str]:
        if output is None:
            return []
        if isinstance(output, list):
            return [str(item) for item in output if item]
        return [str(output)]

    def _provider_error(self, error: Exception) -> ProviderError:
        status = getattr(error, "status", None)
        if status is None and isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
        detail = getattr(error, "detail", None) or str(error)
        return ProviderError(
            f"replicate request failed: {detail}",
            provider=self.name,
            upstream_status=status,
        )
