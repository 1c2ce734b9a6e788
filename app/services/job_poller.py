"""Follow a provider-side generation job until it reaches a terminal state.

Each status check is preceded by a wait that grows geometrically up to a cap,
with random jitter. Polling is bounded by an attempt budget and, optionally, a
wall-clock deadline; a cancel event aborts the loop between or during waits.
"""
import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from app.core.exceptions import JobCancelled, JobFailed, JobTimeout, MalformedResponse, ProviderError
from app.models.job import GenerationJob, JobStatus, JobUpdate

logger = logging.getLogger(__name__)

StatusCheck = Callable[[str], Awaitable[JobUpdate]]


@dataclass(frozen=True)
class PollPolicy:
    interval: float
    max_interval: float = 60.0
    multiplier: float = 1.5
    jitter: float = 0.2
    max_attempts: int = 60
    timeout: Optional[float] = None

    def __post_init__(self):
        if self.interval <= 0:
            raise ValueError("interval must be positive")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not 0 <= self.jitter < 1:
            raise ValueError("jitter must be in [0, 1)")


class JobPoller:
    def __init__(
        self,
        policy: PollPolicy,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        self.policy = policy
        self._clock = clock
        self._sleep = sleep
        self._rand = rand

    def next_delay(self, attempt: int) -> float:
        """Wait before status check number ``attempt`` (zero based)."""
        base = min(self.policy.interval * (self.policy.multiplier ** attempt), self.policy.max_interval)
        if not self.policy.jitter:
            return base
        spread = base * self.policy.jitter
        return max(0.0, base + spread * (2 * self._rand() - 1))

    async def poll(
        self,
        job: GenerationJob,
        check_status: StatusCheck,
        cancel: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Poll ``check_status`` for ``job`` and return the result URL.

        Raises:
            JobFailed: the provider reported an error status
            JobTimeout: the deadline passed or the attempt budget ran out
            JobCancelled: ``cancel`` was set
            MalformedResponse: the job completed without a result URL
            ProviderError: a non-retriable failure while checking status
        """
        if job.is_terminal:
            raise ValueError(f"{job} is already terminal")

        media = job.media_type.value
        deadline = self._clock() + self.policy.timeout if self.policy.timeout else None
        logger.info(f"Polling {job} (timeout={self.policy.timeout}, max_attempts={self.policy.max_attempts})")

        while True:
            self._check_cancelled(job, cancel)

            if job.attempts >= self.policy.max_attempts:
                self._mark(job, JobStatus.TIMEOUT, error="attempt budget exhausted")
                raise JobTimeout(
                    f"{media.capitalize()} generation gave up after {job.attempts} status checks",
                    job_id=job.id,
                    media_type=media,
                )

            delay = self.next_delay(job.attempts)
            if deadline is not None:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    self._mark(job, JobStatus.TIMEOUT, error="deadline exceeded")
                    raise JobTimeout(
                        f"{media.capitalize()} generation timed out after {self.policy.timeout:g}s",
                        job_id=job.id,
                        media_type=media,
                    )
                delay = min(delay, remaining)

            await self._wait(delay, cancel)
            self._check_cancelled(job, cancel)

            job.attempts += 1
            try:
                update = await check_status(job.id)
            except ProviderError as e:
                if not e.retriable:
                    self._mark(job, JobStatus.ERROR, error=e.message)
                    raise
                logger.warning(f"Status check {job.attempts} for {job} failed, will retry: {e.message}")
                continue
            except MalformedResponse:
                self._mark(job, JobStatus.ERROR, error="malformed status payload")
                raise

            logger.debug(f"{job} check {job.attempts}: provider reports {update.status.value}")

            if update.status == JobStatus.COMPLETE:
                if not update.result_url:
                    self._mark(job, JobStatus.ERROR, error="completed without a result")
                    raise MalformedResponse(
                        f"{media.capitalize()} job {job.id} completed without a download URL",
                        media_type=media,
                    )
                job.advance(JobStatus.COMPLETE, result_url=update.result_url)
                logger.info(f"{job} finished after {job.attempts} checks")
                return update.result_url

            if update.status in (JobStatus.ERROR, JobStatus.TIMEOUT):
                reason = update.error or update.status.value
                self._mark(job, JobStatus.ERROR, error=reason)
                raise JobFailed(
                    f"{media.capitalize()} generation encountered an error: {reason}",
                    job_id=job.id,
                    media_type=media,
                )

            job.advance(update.status)

    async def _wait(self, delay: float, cancel: Optional[asyncio.Event]) -> None:
        if cancel is None:
            await self._sleep(delay)
            return

        sleeper = asyncio.ensure_future(self._sleep(delay))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waiter):
                if not task.done():
                    task.cancel()

    def _check_cancelled(self, job: GenerationJob, cancel: Optional[asyncio.Event]) -> None:
        if cancel is not None and cancel.is_set():
            logger.info(f"Polling for {job} cancelled after {job.attempts} checks")
            raise JobCancelled(
                f"{job.media_type.value.capitalize()} generation was cancelled",
                job_id=job.id,
                media_type=job.media_type.value,
            )

    @staticmethod
    def _mark(job: GenerationJob, status: JobStatus, error: str) -> None:
        if not job.is_terminal:
            job.advance(status, error=error)
