import base64
import logging
from collections import deque
from itertools import count
from typing import Any, Deque, Dict, Sequence

from app.core.exceptions import MalformedResponse
from app.models.job import JobStatus, JobUpdate
from app.services.gemini_service import pcm_to_wav
from app.services.media_generator_service import (
    AudioGeneratorService,
    AudioPayload,
    MediaGeneratorService,
    TextGeneratorService,
)

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT = (JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.COMPLETE)


class FakeTextGeneratorService(TextGeneratorService):
    """Echoes the prompt back; used for development without credentials."""

    name = "fake"

    async def generate_text(self, prompt: str) -> str:
        logger.info(f"Generating fake text for prompt: {prompt}")
        return f"Echo: {prompt}"


class FakeAudioGeneratorService(AudioGeneratorService):
    name = "fake"

    async def generate_audio(self, prompt: str) -> AudioPayload:
        # 100ms of silence at 24kHz
        wav = pcm_to_wav(b"\x00\x00" * 2400)
        logger.info(f"Generating fake audio for prompt: {prompt}")
        return AudioPayload(mime_type="audio/wav", data_base64=base64.b64encode(wav).decode("ascii"))


class FakeMediaGeneratorService(MediaGeneratorService):
    """Fake implementation of MediaGeneratorService for testing and development.

    Every submitted job walks through ``script`` one status per check and, once
    complete, points at a local static file. A job is forgotten as soon as it
    reports a terminal status.
    """

    name = "fake"

    def __init__(
        self,
        media_type: str = "image",
        script: Sequence[JobStatus] = DEFAULT_SCRIPT,
        base_url: str = "http://localhost:8000",
    ):
        self.media_type = media_type
        self.script = tuple(script)
        self.base_url = base_url
        self._ids = count(1)
        self._jobs: Dict[str, Dict[str, Any]] = {}
        self.status_calls: Deque[str] = deque(maxlen=1000)

    async def submit(self, prompt: str, options: Any) -> str:
        job_id = f"fake-{self.media_type}-{next(self._ids)}"
        self._jobs[job_id] = {"prompt": prompt, "options": options, "step": 0}
        logger.info(f"Created fake {self.media_type} job {job_id} for prompt: {prompt}")
        return job_id

    async def get_status(self, job_id: str) -> JobUpdate:
        self.status_calls.append(job_id)
        job = self._jobs.get(job_id)
        if job is None:
            raise MalformedResponse(f"Fake {self.media_type} job {job_id} does not exist")
        step = min(job["step"], len(self.script) - 1)
        job["step"] += 1
        status = self.script[step]
        if status.is_terminal:
            del self._jobs[job_id]

        if status == JobStatus.COMPLETE:
            return JobUpdate(status=status, result_url=self.result_url(job_id))
        if status == JobStatus.ERROR:
            return JobUpdate(status=status, error="fake provider error")
        return JobUpdate(status=status)

    def result_url(self, job_id: str) -> str:
        extension = "mp4" if self.media_type == "video" else "jpg"
        return f"{self.base_url}/static/{job_id}.{extension}"
