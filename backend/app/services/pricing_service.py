"""Fare engine for airport transfers."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Sequence

from app.models.fare_config import (
    Capacity,
    FareConfig,
    ProtectionModel,
    RoundingStrategy,
    VehicleClass,
)
from app.services import rounding_service, surcharge_service
from app.services.fare_config_service import FareConfigStore
from app.services.pricing_errors import (
    InvalidInputError,
    ServiceAreaError,
    UnknownVehicleError,
)
from app.services.rounding_service import MONEY_PLACES, to_money
from app.services.surcharge_service import AppliedSurcharge, SurgeStatus

logger = logging.getLogger(__name__)

_ZERO = Decimal("0.00")
_MINUTES_PER_HOUR = Decimal("60")

# (max distance in miles, share of the base airport fee); beyond the last
# bound the final share applies.
AIRPORT_FEE_BANDS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("10"), Decimal("1.00")),
    (Decimal("30"), Decimal("0.75")),
    (Decimal("60"), Decimal("0.50")),
)
AIRPORT_FEE_LONG_HAUL = Decimal("0.25")


@dataclass(frozen=True, slots=True)
class QuoteContext:
    """Optional trip details supplied by the booking flow."""

    trip_at: datetime.datetime | None = None
    origin_code: str | None = None
    destination_code: str | None = None
    passenger_count: int | None = None


@dataclass(frozen=True, slots=True)
class TierCharge:
    """Miles billed inside a single price tier."""

    tier: int
    miles: Decimal
    rate: Decimal
    subtotal: Decimal


@dataclass(frozen=True, slots=True)
class TieredFare:
    total: Decimal
    breakdown: tuple[TierCharge, ...]

    @property
    def miles(self) -> Decimal:
        return sum((charge.miles for charge in self.breakdown), Decimal("0"))


@dataclass(frozen=True, slots=True)
class FareQuote:
    """Complete price breakdown for one vehicle and trip."""

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
    surcharged_price: Decimal
    final_price: Decimal
    rounding_strategy: RoundingStrategy
    applied_surcharges: tuple[AppliedSurcharge, ...] = ()
    tier_breakdown: tuple[TierCharge, ...] = ()
    popular_route: str | None = None

    @property
    def surcharge_total(self) -> Decimal:
        return sum((item.amount for item in self.applied_surcharges), _ZERO)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the quote to plain types for responses and booking records."""
        return {
            "vehicle_id": self.vehicle_id,
            "vehicle_name": self.vehicle_name,
            "distance_miles": str(self.distance_miles),
            "duration_minutes": str(self.duration_minutes),
            "distance_fare": _to_str(self.distance_fare),
            "airport_fee": _to_str(self.airport_fee),
            "tiered_with_fee": _to_str(self.tiered_with_fee),
            "hourly_fare": _to_str(self.hourly_fare),
            "base_fare": _to_str(self.base_fare),
            "protection_model": self.protection_model.value,
            "applied_surcharges": [
                item.to_dict() for item in self.applied_surcharges
            ],
            "surcharged_price": _to_str(self.surcharged_price),
            "final_price": _to_str(self.final_price),
            "rounding_strategy": self.rounding_strategy.value,
            "tier_breakdown": [
                {
                    "tier": charge.tier,
                    "miles": str(charge.miles),
                    "rate": _to_str(charge.rate),
                    "subtotal": _to_str(charge.subtotal),
                }
                for charge in self.tier_breakdown
            ],
            "popular_route": self.popular_route,
        }


@dataclass(slots=True)
class RouteOption:
    """A candidate itinerary for :meth:`FareCalculator.estimate_routes`."""

    distance_miles: Decimal | float
    duration_minutes: Decimal | float
    name: str | None = None
    origin_code: str | None = None
    destination_code: str | None = None


@dataclass(slots=True)
class RouteEstimate:
    route_index: int
    route_name: str
    distance_miles: Decimal
    duration_minutes: Decimal
    price: Decimal | None
    result: FareQuote | ServiceAreaError
    estimated_arrival: datetime.datetime | None = field(default=None)


@dataclass(frozen=True, slots=True)
class VehiclePriceDelta:
    """One vehicle's price relative to the comparison base."""

    vehicle_id: str
    vehicle_name: str
    price: Decimal
    difference: Decimal
    percent_difference: int
    is_base: bool
    capacity: Capacity


@dataclass(frozen=True, slots=True)
class VehicleComparison:
    base_vehicle: str
    base_price: Decimal
    comparison: tuple[VehiclePriceDelta, ...]


@dataclass(frozen=True, slots=True)
class SavingsAnalysis:
    """Tiered pricing measured against the flat first-tier rate it replaced."""

    vehicle_id: str
    new_tiered_total: Decimal
    old_linear_total: Decimal
    hourly_total: Decimal
    chosen_model: ProtectionModel
    savings_vs_old: Decimal
    savings_percent: int


@dataclass(frozen=True, slots=True)
class RoundingImpact:
    """The same trip priced with and without psychological rounding."""

    original_price: Decimal
    psychological_price: Decimal
    difference: Decimal
    perceived_savings: str
    recommendation: str


def _whole_percent(part: Decimal, whole: Decimal) -> int:
    if not whole:
        return 0
    return int((part / whole * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _rounding_recommendation(price: Decimal) -> str:
    if price < 50:
        return "Price ends in 9 - creates bargain perception"
    if price < 150:
        return "Price ends in 5 - professional feel"
    if price < 500:
        return "Price ends in 9 - maximizes perceived value"
    return "Price ends in 45 or 95 - premium positioning"


def _to_str(value: Decimal) -> str:
    return f"{value.quantize(MONEY_PLACES):.2f}"


def _measurement(value: Decimal | float | int, label: str) -> Decimal:
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (ArithmeticError, ValueError) as exc:
        raise InvalidInputError(f"{label} must be a number") from exc
    if not number.is_finite():
        raise InvalidInputError(f"{label} must be finite")
    if number < 0:
        raise InvalidInputError(f"{label} cannot be negative")
    return number


def calculate_tiered_fare(vehicle: VehicleClass, distance: Decimal) -> TieredFare:
    """Bill ``distance`` bracket by bracket across the vehicle's tiers.

    Each tier only charges its own rate for the miles that fall inside it,
    so a 45 mile trip pays tier 1 for 15 miles and tier 2 for 30.
    """
    remaining = distance
    total = Decimal("0")
    breakdown: list[TierCharge] = []
    for index, tier in enumerate(vehicle.price_tiers, start=1):
        if remaining <= 0:
            break
        width = tier.width
        miles = remaining if width is None else min(remaining, width)
        cost = miles * tier.rate_per_mile
        total += cost
        breakdown.append(
            TierCharge(
                tier=index,
                miles=miles,
                rate=tier.rate_per_mile,
                subtotal=to_money(cost),
            )
        )
        remaining -= miles
    return TieredFare(total=to_money(total), breakdown=tuple(breakdown))


def dynamic_airport_fee(vehicle: VehicleClass, distance: Decimal) -> Decimal:
    """Scale the airport fee down as trips get longer."""
    share = AIRPORT_FEE_LONG_HAUL
    for bound, band_share in AIRPORT_FEE_BANDS:
        if distance <= bound:
            share = band_share
            break
    return to_money(vehicle.airport_fee_base * share)


def hourly_protection_fare(vehicle: VehicleClass, duration_minutes: Decimal) -> Decimal:
    return to_money(duration_minutes / _MINUTES_PER_HOUR * vehicle.hourly_protection_rate)


def format_price(amount: Decimal, show_cents: bool = False) -> str:
    """Format a price for display: ``$249`` for whole dollars, else ``$249.50``."""
    if show_cents or amount != amount.to_integral_value():
        return f"${amount.quantize(MONEY_PLACES):.2f}"
    return f"${amount.to_integral_value()}"


def pricing_summary(quote: FareQuote) -> dict[str, Any]:
    """Build the customer-facing summary of a quote."""
    surcharges = None
    total_surcharges = None
    if quote.applied_surcharges:
        surcharges = [
            {"description": item.description, "amount": format_price(item.amount)}
            for item in quote.applied_surcharges
        ]
        total_surcharges = format_price(quote.surcharge_total)
    return {
        "vehicle": quote.vehicle_name,
        "final_price": format_price(quote.final_price),
        "base_price": format_price(quote.base_fare),
        "surcharges": surcharges,
        "total_surcharges": total_surcharges,
    }


class FareCalculator:
    """Prices trips against a :class:`FareConfigStore`.

    Every public operation reads a single configuration snapshot, so
    concurrent administrative updates never mix old and new tables within one
    calculation.
    """

    def __init__(self, store: FareConfigStore) -> None:
        self.store = store

    @classmethod
    def from_config(cls, config: FareConfig) -> "FareCalculator":
        return cls(FareConfigStore(config))

    def _vehicle(self, config: FareConfig, vehicle_id: str) -> VehicleClass:
        vehicle = config.vehicle(vehicle_id)
        if vehicle is None:
            logger.warning("Quote requested for unknown vehicle %s", vehicle_id)
            raise UnknownVehicleError(vehicle_id)
        return vehicle

    def quote(
        self,
        vehicle_id: str,
        distance_miles: Decimal | float | int,
        duration_minutes: Decimal | float | int,
        context: QuoteContext | None = None,
        *,
        rounding: RoundingStrategy | None = None,
    ) -> FareQuote | ServiceAreaError:
        """Price a trip, or report that it is outside the service area."""
        config = self.store.snapshot()
        return self._quote(
            config, vehicle_id, distance_miles, duration_minutes, context, rounding
        )

    def _quote(
        self,
        config: FareConfig,
        vehicle_id: str,
        distance_miles: Decimal | float | int,
        duration_minutes: Decimal | float | int,
        context: QuoteContext | None,
        rounding: RoundingStrategy | None,
    ) -> FareQuote | ServiceAreaError:
        vehicle = self._vehicle(config, vehicle_id)
        distance = _measurement(distance_miles, "distance_miles")
        duration = _measurement(duration_minutes, "duration_minutes")
        context = context or QuoteContext()

        limit = vehicle.max_service_distance
        if limit is not None and distance > limit:
            return ServiceAreaError(
                vehicle_id=vehicle_id,
                distance_miles=distance,
                max_service_distance=limit,
            )

        route = None
        flat_rate = None
        if context.origin_code and context.destination_code:
            route = config.route(context.origin_code, context.destination_code)
            if route is not None:
                flat_rate = route.flat_rates.get(vehicle_id)

        tier_breakdown: tuple[TierCharge, ...] = ()
        if flat_rate is not None:
            distance_fare = to_money(flat_rate)
            distance_model = ProtectionModel.ROUTE_FLAT
        else:
            tiered = calculate_tiered_fare(vehicle, distance)
            distance_fare = tiered.total
            tier_breakdown = tiered.breakdown
            distance_model = ProtectionModel.TIERED

        airport_fee = dynamic_airport_fee(vehicle, distance)
        tiered_with_fee = distance_fare + airport_fee
        hourly_fare = hourly_protection_fare(vehicle, duration)

        if hourly_fare > tiered_with_fee:
            base_fare = hourly_fare
            protection_model = ProtectionModel.HOURLY
        else:
            base_fare = tiered_with_fee
            protection_model = distance_model

        surcharged_price = base_fare
        applied: list[AppliedSurcharge] = []
        if context.trip_at is not None:
            surcharged_price, applied = surcharge_service.apply_surcharges(
                base_fare, config, context.trip_at
            )

        strategy = rounding or config.rounding.strategy
        final_price = rounding_service.apply_psychological_pricing(
            surcharged_price, config.rounding, strategy
        )
        logger.debug(
            "Quoted %s for %s miles / %s minutes: %s (%s)",
            vehicle_id,
            distance,
            duration,
            final_price,
            protection_model.value,
        )
        return FareQuote(
            vehicle_id=vehicle_id,
            vehicle_name=vehicle.display_name,
            distance_miles=distance,
            duration_minutes=duration,
            distance_fare=distance_fare,
            airport_fee=airport_fee,
            tiered_with_fee=tiered_with_fee,
            hourly_fare=hourly_fare,
            base_fare=base_fare,
            protection_model=protection_model,
            surcharged_price=surcharged_price,
            final_price=final_price,
            rounding_strategy=strategy,
            applied_surcharges=tuple(applied),
            tier_breakdown=tier_breakdown,
            popular_route=route.description if flat_rate is not None else None,
        )

    def compare_across_vehicles(
        self,
        distance_miles: Decimal | float | int,
        duration_minutes: Decimal | float | int,
        context: QuoteContext | None = None,
    ) -> list[FareQuote]:
        """Quote every vehicle class, cheapest first, skipping out-of-area ones."""
        config = self.store.snapshot()
        return rank_quotes(
            self._quote(config, vehicle_id, distance_miles, duration_minutes, context, None)
            for vehicle_id in config.vehicles
        )

    def capacity_check(
        self, vehicle_id: str, passenger_count: int, bag_count: int = 0
    ) -> bool:
        vehicle = self._vehicle(self.store.snapshot(), vehicle_id)
        return (
            passenger_count <= vehicle.capacity.max_passengers
            and bag_count <= vehicle.capacity.max_bags
        )

    def vehicles_for_capacity(self, passenger_count: int, bag_count: int = 0) -> list[str]:
        return [
            vehicle.id
            for vehicle in self.store.snapshot().vehicles.values()
            if passenger_count <= vehicle.capacity.max_passengers
            and bag_count <= vehicle.capacity.max_bags
        ]

    def surge_status(self, trip_at: datetime.datetime) -> SurgeStatus:
        return surcharge_service.surge_status(self.store.snapshot(), trip_at)

    def quick_estimate(
        self, vehicle_id: str, distance_miles: Decimal | float | int
    ) -> Decimal:
        """Tiered fare plus airport fee, rounded for display.

        Used for fast UI updates while the rider is still typing; ignores the
        hourly floor, routes and surcharges.
        """
        config = self.store.snapshot()
        vehicle = self._vehicle(config, vehicle_id)
        distance = _measurement(distance_miles, "distance_miles")
        raw = calculate_tiered_fare(vehicle, distance).total + dynamic_airport_fee(
            vehicle, distance
        )
        return rounding_service.apply_psychological_pricing(raw, config.rounding)

    def estimate_routes(
        self,
        vehicle_id: str,
        routes: Sequence[RouteOption],
        context: QuoteContext | None = None,
    ) -> list[RouteEstimate]:
        """Price alternative itineraries, cheapest first.

        Options outside the service area carry no price and sort last.
        """
        config = self.store.snapshot()
        context = context or QuoteContext()
        estimates: list[RouteEstimate] = []
        for index, option in enumerate(routes):
            option_context = QuoteContext(
                trip_at=context.trip_at,
                origin_code=option.origin_code,
                destination_code=option.destination_code,
                passenger_count=context.passenger_count,
            )
            result = self._quote(
                config,
                vehicle_id,
                option.distance_miles,
                option.duration_minutes,
                option_context,
                None,
            )
            duration = _measurement(option.duration_minutes, "duration_minutes")
            arrival = None
            if context.trip_at is not None:
                arrival = context.trip_at + datetime.timedelta(minutes=float(duration))
            estimates.append(
                RouteEstimate(
                    route_index=index,
                    route_name=option.name or f"Route {index + 1}",
                    distance_miles=_measurement(option.distance_miles, "distance_miles"),
                    duration_minutes=duration,
                    price=result.final_price if isinstance(result, FareQuote) else None,
                    result=result,
                    estimated_arrival=arrival,
                )
            )
        return sorted(
            estimates,
            key=lambda item: (item.price is None, item.price or _ZERO),
        )

    def cancellation_fee(self) -> Decimal:
        return to_money(self.store.snapshot().cancellation_fee)

    def compare_vehicle_prices(
        self,
        base_vehicle_id: str,
        distance_miles: Decimal | float | int,
        duration_minutes: Decimal | float | int,
        context: QuoteContext | None = None,
    ) -> VehicleComparison | ServiceAreaError:
        """Price every vehicle class relative to ``base_vehicle_id``.

        Classes that cannot serve the distance are left out; if the base class
        itself cannot, its service-area result is returned instead.
        """
        config = self.store.snapshot()
        base = self._quote(
            config, base_vehicle_id, distance_miles, duration_minutes, context, None
        )
        if isinstance(base, ServiceAreaError):
            return base

        entries = []
        for quote in rank_quotes(
            self._quote(config, vehicle_id, distance_miles, duration_minutes, context, None)
            for vehicle_id in config.vehicles
        ):
            difference = quote.final_price - base.final_price
            entries.append(
                VehiclePriceDelta(
                    vehicle_id=quote.vehicle_id,
                    vehicle_name=quote.vehicle_name,
                    price=quote.final_price,
                    difference=difference,
                    percent_difference=_whole_percent(difference, base.final_price),
                    is_base=quote.vehicle_id == base_vehicle_id,
                    capacity=config.vehicles[quote.vehicle_id].capacity,
                )
            )
        return VehicleComparison(
            base_vehicle=base_vehicle_id,
            base_price=base.final_price,
            comparison=tuple(entries),
        )

    def calculate_savings(
        self,
        vehicle_id: str,
        distance_miles: Decimal | float | int,
        duration_minutes: Decimal | float | int,
    ) -> SavingsAnalysis | ServiceAreaError:
        """Internal analytics: tiered fare against the old linear pricing.

        The old model billed every mile at the first-tier rate plus the full
        airport fee.
        """
        config = self.store.snapshot()
        vehicle = self._vehicle(config, vehicle_id)
        distance = _measurement(distance_miles, "distance_miles")
        duration = _measurement(duration_minutes, "duration_minutes")
        limit = vehicle.max_service_distance
        if limit is not None and distance > limit:
            return ServiceAreaError(
                vehicle_id=vehicle_id, distance_miles=distance, max_service_distance=limit
            )

        tiered_total = calculate_tiered_fare(vehicle, distance).total + dynamic_airport_fee(
            vehicle, distance
        )
        old_total = to_money(
            distance * vehicle.price_tiers[0].rate_per_mile + vehicle.airport_fee_base
        )
        hourly_total = hourly_protection_fare(vehicle, duration)
        return SavingsAnalysis(
            vehicle_id=vehicle_id,
            new_tiered_total=tiered_total,
            old_linear_total=old_total,
            hourly_total=hourly_total,
            chosen_model=(
                ProtectionModel.HOURLY
                if hourly_total > tiered_total
                else ProtectionModel.TIERED
            ),
            savings_vs_old=old_total - tiered_total,
            savings_percent=_whole_percent(old_total - tiered_total, old_total),
        )

    def compare_rounding_impact(
        self,
        vehicle_id: str,
        distance_miles: Decimal | float | int,
        duration_minutes: Decimal | float | int,
        context: QuoteContext | None = None,
    ) -> RoundingImpact | ServiceAreaError:
        """Show what psychological rounding does to one quote.

        The rounded side always applies the configured strategy, even while
        rounding is switched off for an A/B test.
        """
        config = self.store.snapshot()
        unrounded = self._quote(
            config,
            vehicle_id,
            distance_miles,
            duration_minutes,
            context,
            RoundingStrategy.DISABLED,
        )
        if isinstance(unrounded, ServiceAreaError):
            return unrounded

        original = unrounded.final_price
        rounded = rounding_service.apply_psychological_pricing(
            original, replace(config.rounding, enabled=True)
        )
        difference = abs(rounded - original)
        if original > rounded:
            perceived = f"Customer feels they saved {format_price(difference, show_cents=True)}"
        else:
            perceived = (
                f"Price increased by {format_price(difference, show_cents=True)} "
                "for better perception"
            )
        return RoundingImpact(
            original_price=original,
            psychological_price=rounded,
            difference=difference,
            perceived_savings=perceived,
            recommendation=_rounding_recommendation(rounded),
        )


def rank_quotes(results: Iterable[FareQuote | ServiceAreaError]) -> list[FareQuote]:
    """Drop service-area rejections and order the remaining quotes by price."""
    return sorted(
        (result for result in results if isinstance(result, FareQuote)),
        key=lambda item: item.final_price,
    )
