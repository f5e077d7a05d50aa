"""Shared pytest fixtures for store, service and API tests."""

import datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shortener.config import Settings
from shortener.dependencies import get_shortener_service
from shortener.main import app
from shortener.observers import OperationObserver, OperationOutcome
from shortener.service import ShortenerService
from shortener.store import InMemoryAliasStore

START = datetime.datetime(2025, 1, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


class FrozenClock:
    """Controllable clock injected into the service."""

    def __init__(self, now: datetime.datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += datetime.timedelta(**kwargs)


class RecordingObserver(OperationObserver):
    def __init__(self) -> None:
        self.outcomes: list[OperationOutcome] = []

    def notify(self, outcome: OperationOutcome) -> None:
        self.outcomes.append(outcome)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, BASE_URL="http://short.test", GEOLOCATION_TIMEOUT_SECONDS=0.2)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store() -> InMemoryAliasStore:
    return InMemoryAliasStore()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def service(store: InMemoryAliasStore, settings: Settings, clock: FrozenClock, observer: RecordingObserver) -> ShortenerService:
    return ShortenerService(store, settings, observer=observer, clock=clock)


@pytest_asyncio.fixture(scope="function")
async def client(service: ShortenerService) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_shortener_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
