"""Pricing schema definitions."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.models.fare_config import ProtectionModel, RoundingStrategy, SurchargeKind


class TripRequest(BaseModel):
    """Trip measurements and context shared by quote and compare requests."""

    distance_miles: Decimal = Field(ge=0)
    duration_minutes: Decimal = Field(ge=0)
    trip_at: datetime | None = None
    origin_code: str | None = Field(default=None, max_length=8)
    destination_code: str | None = Field(default=None, max_length=8)
    passenger_count: int = Field(default=1, ge=1)


class PricingQuoteRequest(TripRequest):
    """Input payload for pricing a single vehicle class."""

    vehicle_id: str
    rounding_strategy: RoundingStrategy | None = None


class TierChargeRead(BaseModel):
    tier: int
    miles: Decimal
    rate: Decimal
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class AppliedSurchargeRead(BaseModel):
    kind: SurchargeKind
    multiplier: Decimal
    amount: Decimal
    description: str

    model_config = ConfigDict(from_attributes=True)


class PricingQuoteRead(BaseModel):
    """Full fare breakdown returned to the checkout flow."""

    vehicle_id: str
    vehicle_name: str
    distance_miles: Decimal
    duration_minutes: Decimal
    distance_fare: Decimal
    airport_fee: Decimal
    tiered_with_fee: Decimal
    hourly_fare: Decimal
    base_fare: Decimal
    protection_model: ProtectionModel
    applied_surcharges: list[AppliedSurchargeRead]
    surcharged_price: Decimal
    final_price: Decimal
    rounding_strategy: RoundingStrategy
    tier_breakdown: list[TierChargeRead]
    popular_route: str | None = None

    model_config = ConfigDict(from_attributes=True)


class SurchargeRuleRead(BaseModel):
    kind: SurchargeKind
    multiplier: Decimal
    description: str

    model_config = ConfigDict(from_attributes=True)


class SurgeStatusRead(BaseModel):
    """Surcharges in effect at a point in time, for surge banners."""

    active: bool
    rules: list[SurchargeRuleRead]
    total_multiplier: Decimal

    model_config = ConfigDict(from_attributes=True)


class CapacityRead(BaseModel):
    max_passengers: int
    max_bags: int

    model_config = ConfigDict(from_attributes=True)


class VehicleClassRead(BaseModel):
    """Public view of a vehicle class."""

    id: str
    display_name: str
    capacity: CapacityRead
    max_service_distance: Decimal | None = None

    model_config = ConfigDict(from_attributes=True)


class CancellationFeeRead(BaseModel):
    amount: Decimal
