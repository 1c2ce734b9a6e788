"""Pytest configuration helpers.

Puts the project root on `sys.path` and provides the credentials the settings
object requires, so `app.main` can be imported without a real `.env`.
"""
import os
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("MAGIC_HOUR_API_KEY", "test-magic-key")

import asyncio
from typing import Dict, List, Sequence

import pytest

from app.models.job import JobUpdate


class FakeClock:
    """Deterministic stand-in for time.monotonic and asyncio.sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


class ScriptedStatus:
    """Status check that replays a fixed list of updates per job id."""

    def __init__(self, scripts: Dict[str, Sequence]):
        self.scripts = {job_id: list(script) for job_id, script in scripts.items()}
        self.calls: List[str] = []

    async def __call__(self, job_id: str) -> JobUpdate:
        self.calls.append(job_id)
        step = self.scripts[job_id].pop(0)
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scripted_status():
    return ScriptedStatus
