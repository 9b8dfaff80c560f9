"""Fare configuration model exports."""

from app.models.fare_config import (
    Capacity,
    FareConfig,
    PopularRoute,
    PriceTier,
    ProtectionModel,
    RoundingPolicy,
    RoundingStrategy,
    SurchargeKind,
    SurchargeRule,
    VehicleClass,
)

__all__ = [
    "Capacity",
    "FareConfig",
    "PopularRoute",
    "PriceTier",
    "ProtectionModel",
    "RoundingPolicy",
    "RoundingStrategy",
    "SurchargeKind",
    "SurchargeRule",
    "VehicleClass",
]
