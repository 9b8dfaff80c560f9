"""Test fixtures for the pricing backend."""
from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.api import deps
from app.main import app
from app.models import FareConfig
from app.services.fare_config_service import FareConfigStore, load_fare_config
from app.services.pricing_service import FareCalculator


@pytest.fixture()
def fare_config() -> FareConfig:
    """Load the bundled fare tables."""
    return load_fare_config()


@pytest.fixture()
def store(fare_config: FareConfig) -> FareConfigStore:
    """Provide an isolated configuration store for a single test."""
    return FareConfigStore(fare_config)


@pytest.fixture()
def calculator(store: FareConfigStore) -> FareCalculator:
    return FareCalculator(store)


@pytest_asyncio.fixture()
async def client(calculator: FareCalculator) -> AsyncIterator[AsyncClient]:
    """Yield an async client wired to the test's own calculator."""
    app.dependency_overrides[deps.get_fare_calculator] = lambda: calculator
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as http:
            yield http
    finally:
        app.dependency_overrides.pop(deps.get_fare_calculator, None)
