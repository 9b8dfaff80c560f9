"""Error types raised or returned by the fare engine."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable


class UnknownVehicleError(LookupError):
    """Raised when a quote references a vehicle class that is not configured."""

    def __init__(self, vehicle_id: str) -> None:
        super().__init__(f"Unknown vehicle class: {vehicle_id}")
        self.vehicle_id = vehicle_id


class InvalidInputError(ValueError):
    """Raised for negative or non-finite trip measurements."""


class ConfigurationInvariantViolation(ValueError):
    """Raised when a fare configuration fails validation."""

    def __init__(self, issues: Iterable[str]) -> None:
        self.issues = list(issues)
        super().__init__("; ".join(self.issues) or "Invalid fare configuration")


@dataclass(frozen=True, slots=True)
class ServiceAreaError:
    """Trip distance exceeds what the vehicle class may be booked for.

    This is a normal business outcome and is returned from ``quote`` rather
    than raised, so callers can show the limit to the rider.
    """

    vehicle_id: str
    distance_miles: Decimal
    max_service_distance: Decimal

    @property
    def message(self) -> str:
        return (
            f"{self.vehicle_id} can only be booked for trips up to "
            f"{self.max_service_distance} miles"
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "vehicle_id": self.vehicle_id,
            "distance_miles": str(self.distance_miles),
            "max_service_distance": str(self.max_service_distance),
            "message": self.message,
        }


__all__ = [
    "ConfigurationInvariantViolation",
    "InvalidInputError",
    "ServiceAreaError",
    "UnknownVehicleError",
]
