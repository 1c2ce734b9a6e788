"""
tests/test_job_poller.py

Polling a provider job until it completes, fails, times out, or is cancelled.
"""

import asyncio
import time

import pytest

from app.core.exceptions import JobCancelled, JobFailed, JobTimeout, MalformedResponse, ProviderError
from app.models.job import GenerationJob, JobStatus, JobUpdate, MediaType
from app.services.job_poller import JobPoller, PollPolicy

IMAGE_URL = "https://cdn.example.com/image-1.png"


def make_job(job_id="job-1", media_type=MediaType.IMAGE):
    return GenerationJob(id=job_id, provider="test", media_type=media_type)


def fixed_policy(**overrides):
    params = dict(interval=5.0, multiplier=1.0, jitter=0.0, max_attempts=100, timeout=None)
    params.update(overrides)
    return PollPolicy(**params)


def queued():
    return JobUpdate(status=JobStatus.QUEUED)


def pending():
    return JobUpdate(status=JobStatus.PENDING)


def processing():
    return JobUpdate(status=JobStatus.PROCESSING)


def complete(url=IMAGE_URL):
    return JobUpdate(status=JobStatus.COMPLETE, result_url=url)


# ─────────────────────────────────────────────────────
# Completion
# ─────────────────────────────────────────────────────


class TestPollerCompletion:
    @pytest.mark.asyncio
    async def test_returns_url_and_stops_after_complete(self, clock, scripted_status):
        status = scripted_status({"job-1": [queued(), pending(), complete(), processing()]})
        poller = JobPoller(fixed_policy(), clock=clock, sleep=clock.sleep)
        job = make_job()

        url = await poller.poll(job, status)

        assert url == IMAGE_URL
        assert status.calls == ["job-1"] * 3
        assert job.status == JobStatus.COMPLETE
        assert job.result_url == IMAGE_URL
        assert job.attempts == 3

    @pytest.mark.asyncio
    async def test_waits_before_every_check(self, clock, scripted_status):
        status = scripted_status({"job-1": [queued(), complete()]})
        poller = JobPoller(fixed_policy(), clock=clock, sleep=clock.sleep)

        await poller.poll(make_job(), status)

        assert clock.sleeps == [5.0, 5.0]

    @pytest.mark.asyncio
    async def test_status_regression_does_not_move_job_backwards(self, clock, scripted_status):
        status = scripted_status({"job-1": [processing(), queued(), complete()]})
        poller = JobPoller(fixed_policy(), clock=clock, sleep=clock.sleep)
        job = make_job()

        assert await poller.poll(job, status) == IMAGE_URL
        assert job.status == JobStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_complete_without_url_is_malformed(self, clock, scripted_status):
        status = scripted_status({"job-1": [queued(), JobUpdate(status=JobStatus.COMPLETE)]})
        poller = JobPoller(fixed_policy(), clock=clock, sleep=clock.sleep)
        job = make_job()

        with pytest.raises(MalformedResponse):
            await poller.poll(job, status)

        assert job.status == JobStatus.ERROR
        assert job.result_url is None
        assert len(status.calls) == 2

    @pytest.mark.asyncio
    async def test_terminal_job_is_never_polled(self, clock, scripted_status):
        status = scripted_status({"job-1": [complete()]})
        poller = JobPoller(fixed_policy(), clock=clock, sleep=clock.sleep)
        job = make_job()
        job.advance(JobStatus.COMPLETE, result_url=IMAGE_URL)

        with pytest.raises(ValueError):
            await poller.poll(job, status)

        assert status.calls == []


# ─────────────────────────────────────────────────────
# Failure
# ─────────────────────────────────────────────────────


class TestPollerFailure:
    @pytest.mark.asyncio
    async def test_error_status_stops_immediately(self, clock, scripted_status):
        status = scripted_status({
            "job-1": [queued(), JobUpdate(status=JobStatus.ERROR, error="nsfw content"), complete()],
        })
        poller = JobPoller(fixed_policy(), clock=clock, sleep=clock.sleep)
        job = make_job()

        with pytest.raises(JobFailed) as exc_info:
            await poller.poll(job, status)

        assert "nsfw content" in exc_info.value.message
        assert exc_info.value.job_id == "job-1"
        assert exc_info.value.media_type == "image"
        assert len(status.calls) == 2
        assert job.status == JobStatus.ERROR

    @pytest.mark.asyncio
    async def test_error_on_first_check(self, clock, scripted_status):
        status = scripted_status({"job-1": [JobUpdate(status=JobStatus.ERROR)]})
        poller = JobPoller(fixed_policy(), clock=clock, sleep=clock.sleep)

        with pytest.raises(JobFailed):
            await poller.poll(make_job(), status)

        assert len(status.calls) == 1

    @pytest.mark.asyncio
    async def test_retriable_provider_error_is_retried(self, clock, scripted_status):
        flaky = ProviderError("upstream hiccup", provider="test", upstream_status=503)
        status = scripted_status({"job-1": [flaky, complete()]})
        poller = JobPoller(fixed_policy(), clock=clock, sleep=clock.sleep)
        job = make_job()

        assert await poller.poll(job, status) == IMAGE_URL
        assert job.attempts == 2

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self, clock, scripted_status):
        unreachable = ProviderError("connection reset", provider="test")
        status = scripted_status({"job-1": [unreachable, unreachable, complete()]})
        poller = JobPoller(fixed_policy(), clock=clock, sleep=clock.sleep)

        assert await poller.poll(make_job(), status) == IMAGE_URL
        assert len(status.calls) == 3

    @pytest.mark.asyncio
    async def test_non_retriable_provider_error_propagates(self, clock, scripted_status):
        denied = ProviderError("invalid api key", provider="test", upstream_status=401)
        status = scripted_status({"job-1": [denied, complete()]})
        poller = JobPoller(fixed_policy(), clock=clock, sleep=clock.sleep)
        job = make_job()

        with pytest.raises(ProviderError):
            await poller.poll(job, status)

        assert len(status.calls) == 1
        assert job.status == JobStatus.ERROR


# ─────────────────────────────────────────────────────
# Bounds
# ─────────────────────────────────────────────────────


class TestPollerBounds:
    @pytest.mark.asyncio
    async def test_deadline_raises_timeout_at_or_after_deadline(self, clock):
        async def never_finishes(job_id):
            return processing()

        poller = JobPoller(fixed_policy(interval=7.0, timeout=30.0), clock=clock, sleep=clock.sleep)
        job = make_job()

        with pytest.raises(JobTimeout):
            await poller.poll(job, never_finishes)

        assert clock.now >= 30.0
        assert clock.now < 30.0 + 7.0
        assert job.status == JobStatus.TIMEOUT

    @pytest.mark.asyncio
    async def test_last_wait_is_clipped_to_deadline(self, clock):
        async def never_finishes(job_id):
            return processing()

        poller = JobPoller(fixed_policy(interval=7.0, timeout=30.0), clock=clock, sleep=clock.sleep)

        with pytest.raises(JobTimeout):
            await poller.poll(make_job(), never_finishes)

        assert clock.sleeps == [7.0, 7.0, 7.0, 7.0, 2.0]

    @pytest.mark.asyncio
    async def test_deadline_with_real_clock(self):
        async def never_finishes(job_id):
            return processing()

        poller = JobPoller(fixed_policy(interval=0.05, timeout=0.3))

        started = time.monotonic()
        with pytest.raises(JobTimeout):
            await poller.poll(make_job(), never_finishes)
        elapsed = time.monotonic() - started

        assert elapsed >= 0.3
        assert elapsed < 1.0

    @pytest.mark.asyncio
    async def test_attempt_budget_without_deadline(self, clock):
        calls = []

        async def never_finishes(job_id):
            calls.append(job_id)
            return pending()

        poller = JobPoller(fixed_policy(max_attempts=4), clock=clock, sleep=clock.sleep)
        job = make_job()

        with pytest.raises(JobTimeout) as exc_info:
            await poller.poll(job, never_finishes)

        assert len(calls) == 4
        assert "4 status checks" in exc_info.value.message
        assert job.status == JobStatus.TIMEOUT


# ─────────────────────────────────────────────────────
# Backoff
# ─────────────────────────────────────────────────────


class TestBackoff:
    def test_delay_grows_and_caps(self):
        poller = JobPoller(PollPolicy(interval=5.0, multiplier=2.0, max_interval=20.0, jitter=0.0))
        assert [poller.next_delay(n) for n in range(5)] == [5.0, 10.0, 20.0, 20.0, 20.0]

    def test_jitter_bounds(self):
        policy = PollPolicy(interval=10.0, multiplier=1.0, jitter=0.2)
        high = JobPoller(policy, rand=lambda: 1.0)
        low = JobPoller(policy, rand=lambda: 0.0)
        middle = JobPoller(policy, rand=lambda: 0.5)

        assert high.next_delay(0) == pytest.approx(12.0)
        assert low.next_delay(0) == pytest.approx(8.0)
        assert middle.next_delay(0) == pytest.approx(10.0)

    @pytest.mark.parametrize(
        "params",
        [
            {"interval": 0},
            {"interval": 1.0, "max_attempts": 0},
            {"interval": 1.0, "jitter": 1.5},
        ],
    )
    def test_invalid_policy(self, params):
        with pytest.raises(ValueError):
            PollPolicy(**params)


# ─────────────────────────────────────────────────────
# Cancellation
# ─────────────────────────────────────────────────────


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_checked_before_next_iteration(self, clock):
        cancel = asyncio.Event()
        calls = []

        async def status(job_id):
            calls.append(job_id)
            if len(calls) == 2:
                cancel.set()
            return processing()

        poller = JobPoller(fixed_policy(), clock=clock, sleep=clock.sleep)

        with pytest.raises(JobCancelled):
            await poller.poll(make_job(), status, cancel=cancel)

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_cancel_interrupts_wait(self):
        cancel = asyncio.Event()
        calls = []

        async def status(job_id):
            calls.append(job_id)
            return processing()

        poller = JobPoller(fixed_policy(interval=30.0))
        asyncio.get_running_loop().call_later(0.05, cancel.set)

        started = time.monotonic()
        with pytest.raises(JobCancelled):
            await poller.poll(make_job(), status, cancel=cancel)

        assert time.monotonic() - started < 5.0
        assert calls == []

    @pytest.mark.asyncio
    async def test_already_cancelled_never_checks(self, clock):
        cancel = asyncio.Event()
        cancel.set()
        calls = []

        async def status(job_id):
            calls.append(job_id)
            return complete()

        poller = JobPoller(fixed_policy(), clock=clock, sleep=clock.sleep)

        with pytest.raises(JobCancelled):
            await poller.poll(make_job(), status, cancel=cancel)

        assert calls == []
        assert clock.sleeps == []


# ─────────────────────────────────────────────────────
# Isolation
# ─────────────────────────────────────────────────────


class TestConcurrentPolls:
    @pytest.mark.asyncio
    async def test_simultaneous_jobs_resolve_independently(self, scripted_status):
        image_url = "https://cdn.example.com/a.png"
        video_url = "https://cdn.example.com/b.mp4"
        status = scripted_status({
            "image-job": [queued(), processing(), processing(), complete(image_url)],
            "video-job": [pending(), complete(video_url)],
        })
        poller = JobPoller(fixed_policy(interval=0.01))
        image_job = make_job("image-job", MediaType.IMAGE)
        video_job = make_job("video-job", MediaType.VIDEO)

        results = await asyncio.gather(
            poller.poll(image_job, status),
            poller.poll(video_job, status),
        )

        assert results == [image_url, video_url]
        assert image_job.result_url == image_url
        assert video_job.result_url == video_url
        assert status.calls.count("image-job") == 4
        assert status.calls.count("video-job") == 2

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_other_job(self, scripted_status):
        status = scripted_status({
            "bad": [queued(), JobUpdate(status=JobStatus.ERROR, error="boom")],
            "good": [queued(), processing(), complete()],
        })
        poller = JobPoller(fixed_policy(interval=0.01))
        bad, good = make_job("bad"), make_job("good")

        results = await asyncio.gather(
            poller.poll(bad, status),
            poller.poll(good, status),
            return_exceptions=True,
        )

        assert isinstance(results[0], JobFailed)
        assert results[1] == IMAGE_URL
        assert bad.status == JobStatus.ERROR
        assert good.status == JobStatus.COMPLETE
