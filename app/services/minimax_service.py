import logging
from typing import Any, Dict

import httpx

from app.core.exceptions import MalformedResponse, ProviderError
from app.models.job import JobStatus, JobUpdate
from app.schemas.generation import VideoOptions
from app.schemas.providers import (
    MinimaxBaseResp,
    MinimaxCreateResponse,
    MinimaxFileResponse,
    MinimaxTaskStatus,
)
from app.services.media_generator_service import HttpProvider, MediaGeneratorService

logger = logging.getLogger(__name__)

# base_resp codes worth another status check; 1002 is the rate limit
_RETRIABLE_CODES = {1000, 1001, 1002}

_STATUS_MAP = {
    "queueing": JobStatus.QUEUED,
    "preparing": JobStatus.PENDING,
    "processing": JobStatus.PROCESSING,
    "success": JobStatus.COMPLETE,
    "fail": JobStatus.ERROR,
    "failed": JobStatus.ERROR,
}


class MinimaxVideoService(HttpProvider, MediaGeneratorService):
    """Secondary text-to-video backend.

    Every call, including the status and file lookups, goes through the one
    configured base URL.
    """

    name = "minimax"

    def __init__(self, api_key: str, base_url: str, http_client: httpx.AsyncClient, model: str):
        super().__init__(base_url, http_client)
        self._api_key = api_key
        self.model = model

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _check(self, base_resp: MinimaxBaseResp) -> None:
        # Minimax reports business errors with HTTP 200 and a non-zero code
        if base_resp.status_code != 0:
            raise ProviderError(
                f"minimax request failed: {base_resp.status_msg or base_resp.status_code}",
                provider=self.name,
                retriable=base_resp.status_code in _RETRIABLE_CODES,
            )

    async def submit(self, prompt: str, options: VideoOptions) -> str:
        # Hailuo only renders 6s or 10s clips
        duration = 10 if options.end_seconds > 6 else 6
        body: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "duration": duration,
            "resolution": "768P",
        }
        logger.info(f"Submitting Minimax video job ({duration}s, model={self.model})")
        created = await self._request("POST", "/video_generation", MinimaxCreateResponse, json=body)
        self._check(created.base_resp)
        if not created.task_id:
            raise MalformedResponse("Minimax accepted the request but returned no task_id")
        logger.info(f"Minimax accepted job {created.task_id}")
        return created.task_id

    async def get_status(self, job_id: str) -> JobUpdate:
        task = await self._request(
            "GET", "/query/video_generation", MinimaxTaskStatus, params={"task_id": job_id}
        )
        self._check(task.base_resp)

        status = _STATUS_MAP.get(task.status.lower())
        if status is None:
            raise MalformedResponse(f"Unknown Minimax task status '{task.status}'")

        if status == JobStatus.ERROR:
            return JobUpdate(status=status, error=task.base_resp.status_msg or "Minimax task failed")

        if status == JobStatus.COMPLETE:
            if not task.file_id:
                return JobUpdate(status=status)
            return JobUpdate(status=status, result_url=await self._download_url(task.file_id))

        return JobUpdate(status=status)

    async def _download_url(self, file_id: str) -> str:
        payload = await self._request("GET", "/files/retrieve", MinimaxFileResponse, params={"file_id": file_id})
        self._check(payload.base_resp)
        if payload.file is None or not payload.file.download_url:
            raise MalformedResponse(f"Minimax file {file_id} has no download_url")
        return payload.file.download_url
