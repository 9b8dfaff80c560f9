"""Immutable fare configuration objects."""

from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping


class SurchargeKind(str, enum.Enum):
    """Time-based surcharge categories."""

    NIGHT = "night"
    WEEKEND = "weekend"
    PEAK = "peak"
    HOLIDAY = "holiday"


class RoundingStrategy(str, enum.Enum):
    """Psychological rounding strategies available for A/B testing."""

    AUTO = "auto"
    ALWAYS_9 = "always9"
    ALWAYS_5 = "always5"
    DISABLED = "disabled"


class ProtectionModel(str, enum.Enum):
    """Which pricing floor produced the base fare."""

    TIERED = "tiered"
    HOURLY = "hourly"
    ROUTE_FLAT = "routeFlat"


@dataclass(frozen=True, slots=True)
class PriceTier:
    """Per-mile rate for the half-open mileage range ``[min_miles, max_miles)``."""

    min_miles: Decimal
    max_miles: Decimal | None
    rate_per_mile: Decimal

    @property
    def width(self) -> Decimal | None:
        if self.max_miles is None:
            return None
        return self.max_miles - self.min_miles


@dataclass(frozen=True, slots=True)
class Capacity:
    max_passengers: int
    max_bags: int


@dataclass(frozen=True, slots=True)
class VehicleClass:
    """Pricing profile for a single vehicle category."""

    id: str
    display_name: str
    price_tiers: tuple[PriceTier, ...]
    airport_fee_base: Decimal
    hourly_protection_rate: Decimal
    capacity: Capacity
    max_service_distance: Decimal | None = None


@dataclass(frozen=True, slots=True)
class SurchargeRule:
    """Multiplicative modifier applied when the trip time matches.

    Hour windows are ``[start_hour, end_hour)`` and wrap past midnight when
    ``start_hour > end_hour``. Weekdays follow :meth:`datetime.date.weekday`.
    """

    kind: SurchargeKind
    multiplier: Decimal
    description: str
    start_hour: int | None = None
    end_hour: int | None = None
    weekdays: frozenset[int] = frozenset()


@dataclass(frozen=True, slots=True)
class PopularRoute:
    """Pre-negotiated flat prices for an origin/destination pair."""

    key: str
    description: str
    distance_miles: Decimal | None
    flat_rates: Mapping[str, Decimal]


@dataclass(frozen=True, slots=True)
class RoundingPolicy:
    enabled: bool = True
    strategy: RoundingStrategy = RoundingStrategy.AUTO
    threshold: Decimal = Decimal("10")


@dataclass(frozen=True, slots=True)
class FareConfig:
    """A consistent snapshot of every table the fare calculator reads."""

    vehicles: Mapping[str, VehicleClass]
    routes: Mapping[str, PopularRoute] = field(
        default_factory=lambda: MappingProxyType({})
    )
    surcharges: tuple[SurchargeRule, ...] = ()
    holidays: frozenset[datetime.date] = frozenset()
    rounding: RoundingPolicy = field(default_factory=RoundingPolicy)
    cancellation_fee: Decimal = Decimal("0.00")

    def vehicle(self, vehicle_id: str) -> VehicleClass | None:
        return self.vehicles.get(vehicle_id)

    def route(self, origin: str, destination: str) -> PopularRoute | None:
        return self.routes.get(route_key(origin, destination))


def route_key(origin: str, destination: str) -> str:
    """Build the case-insensitive lookup key for a popular route."""
    return f"{origin.strip().upper()}-{destination.strip().upper()}"


def freeze_mapping(values: Mapping[str, object]) -> MappingProxyType:
    return MappingProxyType(dict(values))


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
    "freeze_mapping",
    "route_key",
]
