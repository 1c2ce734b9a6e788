from typing import Optional


class GenerationError(Exception):
    """Base class for failures surfaced to API clients."""

    status_code: int = 500
    error_type: str = "generation_error"

    def __init__(self, message: str, media_type: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.media_type = media_type


class ValidationError(GenerationError):
    status_code = 400
    error_type = "validation_error"


class ProviderError(GenerationError):
    """A provider answered with a non-2xx status or could not be reached."""

    error_type = "provider_error"

    RETRIABLE_STATUS = {408, 429, 500, 502, 503, 504}

    def __init__(
        self,
        message: str,
        provider: str,
        upstream_status: Optional[int] = None,
        media_type: Optional[str] = None,
        retriable: Optional[bool] = None,
    ):
        super().__init__(message, media_type=media_type)
        self.provider = provider
        self.upstream_status = upstream_status
        self._retriable = retriable

    @property
    def retriable(self) -> bool:
        if self._retriable is not None:
            return self._retriable
        # upstream_status is None for transport failures (connect, read timeout)
        return self.upstream_status is None or self.upstream_status in self.RETRIABLE_STATUS


class MalformedResponse(GenerationError):
    error_type = "malformed_response"


class JobFailed(GenerationError):
    error_type = "job_failed"

    def __init__(self, message: str, job_id: str, media_type: Optional[str] = None):
        super().__init__(message, media_type=media_type)
        self.job_id = job_id


class JobTimeout(GenerationError):
    error_type = "job_timeout"

    def __init__(self, message: str, job_id: str, media_type: Optional[str] = None):
        super().__init__(message, media_type=media_type)
        self.job_id = job_id


class JobCancelled(GenerationError):
    status_code = 499
    error_type = "job_cancelled"

    def __init__(self, message: str, job_id: Optional[str] = None, media_type: Optional[str] = None):
        super().__init__(message, media_type=media_type)
        self.job_id = job_id
