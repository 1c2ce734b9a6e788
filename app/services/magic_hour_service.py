import logging
from typing import Any, Dict

import httpx

from app.core.exceptions import MalformedResponse
from app.models.job import JobStatus, JobUpdate
from app.schemas.generation import ImageOptions, VideoOptions
from app.schemas.providers import MagicHourCreateResponse, MagicHourProject
from app.services.media_generator_service import HttpProvider, MediaGeneratorService

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "draft": JobStatus.PENDING,
    "queued": JobStatus.QUEUED,
    "pending": JobStatus.PENDING,
    "rendering": JobStatus.PROCESSING,
    "processing": JobStatus.PROCESSING,
    "complete": JobStatus.COMPLETE,
    "error": JobStatus.ERROR,
    "failed": JobStatus.ERROR,
    "canceled": JobStatus.ERROR,
}


class MagicHourService(HttpProvider, MediaGeneratorService):
    """Common plumbing for the Magic Hour project APIs.

    Subclasses name the create endpoint, the project status collection, and
    build the request body.
    """

    name = "magichour"
    create_path: str
    project_path: str

    def __init__(self, api_key: str, base_url: str, http_client: httpx.AsyncClient):
        super().__init__(base_url, http_client)
        self._api_key = api_key

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _build_body(self, prompt: str, options: Any) -> Dict[str, Any]:
        raise NotImplementedError

    async def submit(self, prompt: str, options: Any) -> str:
        body = self._build_body(prompt, options)
        logger.info(f"Submitting Magic Hour job to {self.create_path}: {body['name']}")
        created = await self._request("POST", self.create_path, MagicHourCreateResponse, json=body)
        logger.info(f"Magic Hour accepted job {created.id}")
        return created.id

    async def get_status(self, job_id: str) -> JobUpdate:
        project = await self._request("GET", f"{self.project_path}/{job_id}", MagicHourProject)
        return self.to_update(project)

    @staticmethod
    def to_update(project: MagicHourProject) -> JobUpdate:
        status = _STATUS_MAP.get(project.status.lower())
        if status is None:
            raise MalformedResponse(f"Unknown Magic Hour project status '{project.status}'")

        if status == JobStatus.COMPLETE:
            # An empty downloads list is left for the poller to reject
            url = project.downloads[0].url if project.downloads else None
            return JobUpdate(status=status, result_url=url)

        if status == JobStatus.ERROR:
            detail = project.error.message if project.error and project.error.message else project.status
            return JobUpdate(status=status, error=detail)

        return JobUpdate(status=status)


class MagicHourImageService(MagicHourService):
    create_path = "/ai-image-generator"
    project_path = "/image-projects"

    def _build_body(self, prompt: str, options: ImageOptions) -> Dict[str, Any]:
        return {
            "name": options.project_name(),
            "image_count": options.image_count,
            "orientation": options.orientation,
            "style": {"prompt": prompt},
        }


class MagicHourVideoService(MagicHourService):
    create_path = "/text-to-video"
    project_path = "/video-projects"

    def _build_body(self, prompt: str, options: VideoOptions) -> Dict[str, Any]:
        return {
            "name": options.project_name(),
            "end_seconds": options.end_seconds,
            "orientation": options.orientation,
            "style": {"prompt": prompt},
        }
