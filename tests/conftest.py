"""Shared test fixtures for linodepool."""

from __future__ import annotations

import pytest

from fakes import FakeClock, FakeLinodeAPI
from linodepool.config import LinodeConfig
from linodepool.jobs import JobPoller
from linodepool.protocol import LinodeClient
from linodepool.provider import LinodeProvider


@pytest.fixture
def api() -> FakeLinodeAPI:
    return FakeLinodeAPI()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client(api: FakeLinodeAPI) -> LinodeClient:
    return LinodeClient("test-key", endpoint="https://api.test/", session=api)


@pytest.fixture
def poller(client: LinodeClient, clock: FakeClock) -> JobPoller:
    return JobPoller(client, interval=5, timeout=60, clock=clock.time, sleep=clock.sleep)


@pytest.fixture
def provider(client: LinodeClient, poller: JobPoller) -> LinodeProvider:
    config = LinodeConfig(api_key="test-key", endpoint="https://api.test/")
    return LinodeProvider(config, client=client, poller=poller)
