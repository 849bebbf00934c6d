"""
Shared pytest fixtures for SmartSentry tests.

Network access is replaced by httpx.MockTransport handlers; backoff sleeps
are recorded instead of awaited.
"""

import os
import tempfile
from pathlib import Path

# Keep config.py from pointing the backend at the user's home directory
os.environ.setdefault("SMARTSENTRY_DATA_DIR", str(Path(tempfile.gettempdir()) / "smartsentry-tests"))

import httpx
import pytest

from smartsentry.http_client import HttpClient
from smartsentry.retry import RetryPolicy
from smartsentry.storage import MemoryKeyValueStore
from smartsentry.token_store import TokenStore

BASE_URL = "http://sentry.test/api"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def token_store(store):
    return TokenStore(store)


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_client(token_store, sleeps):
    """Factory: HttpClient whose transport is the given request handler."""
    def _make(handler, **kwargs) -> HttpClient:
        return HttpClient(
            token_store,
            BASE_URL,
            transport=httpx.MockTransport(handler),
            retry_policy=RetryPolicy(sleep=sleeps),
            **kwargs,
        )
    return _make
