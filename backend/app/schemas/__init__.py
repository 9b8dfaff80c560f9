"""Schema exports."""

from app.schemas.pricing import (
    AppliedSurchargeRead,
    CancellationFeeRead,
    CapacityRead,
    PricingQuoteRead,
    PricingQuoteRequest,
    SurchargeRuleRead,
    SurgeStatusRead,
    TierChargeRead,
    TripRequest,
    VehicleClassRead,
)

__all__ = [
    "AppliedSurchargeRead",
    "CancellationFeeRead",
    "CapacityRead",
    "PricingQuoteRead",
    "PricingQuoteRequest",
    "SurchargeRuleRead",
    "SurgeStatusRead",
    "TierChargeRead",
    "TripRequest",
    "VehicleClassRead",
]
