"""Service layer exports."""
from app.services import (
    fare_config_service,
    pricing_service,
    rounding_service,
    surcharge_service,
)

__all__ = [
    "fare_config_service",
    "pricing_service",
    "rounding_service",
    "surcharge_service",
]
