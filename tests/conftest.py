from pathlib import Path

import pytest

from services.rate_cache import RateCacheCoordinator
from services.rate_service import RateService
from tests.constants import NOW, TTL
from tests.helpers.rate_fakes import FakeClock, RecordingStore, StubRateFetcher


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture(scope="function")
def store(tmp_path: Path) -> RecordingStore:
    return RecordingStore(path=tmp_path / "rates.json")


@pytest.fixture(scope="function")
def fetcher() -> StubRateFetcher:
    return StubRateFetcher()


@pytest.fixture(scope="function")
def coordinator(store: RecordingStore, fetcher: StubRateFetcher, clock: FakeClock) -> RateCacheCoordinator:
    return RateCacheCoordinator(store=store, fetcher=fetcher, ttl=TTL, clock=clock)


@pytest.fixture(scope="function")
def rate_service(coordinator: RateCacheCoordinator) -> RateService:
    return RateService(coordinator)
