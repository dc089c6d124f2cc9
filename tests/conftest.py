"""Shared fixtures for the test suite"""

from collections.abc import Callable

import httpx
import pytest

from tests.fakes import FakeProbe


@pytest.fixture
def fake_probe_factory() -> Callable[..., Callable[[httpx.AsyncClient, float], FakeProbe]]:
    """Build a DiscoveryService probe_factory returning a given FakeProbe"""

    def make(probe: FakeProbe) -> Callable[[httpx.AsyncClient, float], FakeProbe]:
        def factory(client: httpx.AsyncClient, timeout: float) -> FakeProbe:
            return probe

        return factory

    return make
