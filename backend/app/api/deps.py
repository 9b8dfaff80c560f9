"""Common API dependencies."""

from __future__ import annotations

from functools import lru_cache

from app.core.config import get_settings
from app.services.fare_config_service import FareConfigStore, load_fare_config
from app.services.pricing_service import FareCalculator


@lru_cache
def get_fare_config_store() -> FareConfigStore:
    """Load the configured fare tables once per process."""
    settings = get_settings()
    return FareConfigStore(load_fare_config(settings.fare_config_path))


def get_fare_calculator() -> FareCalculator:
    """Provide a calculator bound to the process-wide configuration store."""
    return FareCalculator(get_fare_config_store())
