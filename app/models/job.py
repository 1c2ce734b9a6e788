import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class MediaType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"


class JobStatus(str, Enum):
    QUEUED = "queued"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETE, JobStatus.ERROR, JobStatus.TIMEOUT})

_STATUS_RANK = {
    JobStatus.QUEUED: 0,
    JobStatus.PENDING: 1,
    JobStatus.PROCESSING: 2,
    JobStatus.COMPLETE: 3,
    JobStatus.ERROR: 3,
    JobStatus.TIMEOUT: 3,
}


class JobUpdate(BaseModel):
    """A provider's status payload translated into job vocabulary."""

    status: JobStatus
    result_url: Optional[str] = None
    error: Optional[str] = None


class GenerationJob(BaseModel):
    id: str
    provider: str
    media_type: MediaType
    status: JobStatus = JobStatus.QUEUED
    result_url: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def advance(
        self,
        status: JobStatus,
        result_url: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """Move the job forward.

        Backwards moves reported by a provider are ignored. Leaving a terminal
        status raises ValueError.
        """
        if self.is_terminal:
            raise ValueError(f"Job {self.id} is already {self.status.value}, cannot move to {status.value}")

        if _STATUS_RANK[status] < _STATUS_RANK[self.status]:
            logger.debug(f"Ignoring status regression for job {self.id}: {self.status.value} -> {status.value}")
            return

        self.status = status
        if result_url is not None:
            self.result_url = result_url
        if error is not None:
            self.error = error

    def __str__(self):
        return f"Job {self.id} ({self.provider}) - {self.status.value}"
