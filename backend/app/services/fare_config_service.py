"""Fare configuration loading, validation and copy-on-write updates."""

from __future__ import annotations

import datetime
import logging
import threading
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

import yaml

from app.models.fare_config import (
    Capacity,
    FareConfig,
    PopularRoute,
    PriceTier,
    RoundingPolicy,
    RoundingStrategy,
    SurchargeKind,
    SurchargeRule,
    VehicleClass,
    freeze_mapping,
    route_key,
)
from app.services.pricing_errors import (
    ConfigurationInvariantViolation,
    UnknownVehicleError,
)

logger = logging.getLogger(__name__)

DEFAULT_FARE_FILE = Path(__file__).resolve().parents[1] / "data" / "fares.yaml"

_SURCHARGE_ORDER = (
    SurchargeKind.NIGHT,
    SurchargeKind.WEEKEND,
    SurchargeKind.PEAK,
    SurchargeKind.HOLIDAY,
)


def _issue(message: str) -> ConfigurationInvariantViolation:
    return ConfigurationInvariantViolation([message])


def _mapping(value: Any, label: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise _issue(f"{label}: expected a mapping, got {type(value).__name__}")
    return value


def _sequence(value: Any, label: str) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (str, Mapping)) or not isinstance(value, Iterable):
        raise _issue(f"{label}: expected a list, got {type(value).__name__}")
    return list(value)


def _required(raw: Mapping[str, Any], key: str, label: str) -> Any:
    value = raw.get(key)
    if value is None:
        raise _issue(f"{label}: missing {key}")
    return value


def _decimal(value: Any, label: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise _issue(f"{label}: not a number ({value!r})") from exc
    if not number.is_finite():
        raise _issue(f"{label}: not a finite number ({value!r})")
    return number


def _optional_decimal(value: Any, label: str) -> Decimal | None:
    if value is None:
        return None
    return _decimal(value, label)


def _int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise _issue(f"{label}: not a whole number ({value!r})")
    number = _decimal(value, label)
    if number != number.to_integral_value():
        raise _issue(f"{label}: not a whole number ({value!r})")
    return int(number)


def _optional_int(value: Any, label: str) -> int | None:
    if value is None:
        return None
    return _int(value, label)


def parse_holiday(value: datetime.date | str) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value))
    except ValueError as exc:
        raise _issue(f"holiday {value!r} is not an ISO YYYY-MM-DD date") from exc


def _parse_tiers(vehicle_id: str, raw_tiers: Any) -> tuple[PriceTier, ...]:
    tiers = []
    for index, raw in enumerate(_sequence(raw_tiers, f"{vehicle_id} price_tiers"), start=1):
        label = f"{vehicle_id} tier {index}"
        raw = _mapping(raw, label)
        tiers.append(
            PriceTier(
                min_miles=_decimal(raw.get("min_miles", 0), label),
                max_miles=_optional_decimal(raw.get("max_miles"), label),
                rate_per_mile=_decimal(_required(raw, "rate_per_mile", label), label),
            )
        )
    return tuple(tiers)


def _parse_capacity(vehicle_id: str, raw: Any) -> Capacity:
    raw = _mapping(raw, f"{vehicle_id} capacity")
    return Capacity(
        max_passengers=_int(raw.get("max_passengers", 0), f"{vehicle_id} max_passengers"),
        max_bags=_int(raw.get("max_bags", 0), f"{vehicle_id} max_bags"),
    )


def _parse_vehicle(vehicle_id: str, raw: Any) -> VehicleClass:
    raw = _mapping(raw, vehicle_id)
    return VehicleClass(
        id=vehicle_id,
        display_name=str(raw.get("display_name", vehicle_id)),
        price_tiers=_parse_tiers(vehicle_id, raw.get("price_tiers")),
        airport_fee_base=_decimal(raw.get("airport_fee_base", 0), vehicle_id),
        hourly_protection_rate=_decimal(
            raw.get("hourly_protection_rate", 0), vehicle_id
        ),
        capacity=_parse_capacity(vehicle_id, raw.get("capacity")),
        max_service_distance=_optional_decimal(
            raw.get("max_service_distance"), vehicle_id
        ),
    )


def _parse_route(key: str, raw: Any) -> PopularRoute:
    origin, _, destination = str(key).partition("-")
    normalized = route_key(origin, destination)
    raw = _mapping(raw, normalized)
    return PopularRoute(
        key=normalized,
        description=str(raw.get("description", normalized)),
        distance_miles=_optional_decimal(raw.get("distance_miles"), normalized),
        flat_rates=freeze_mapping(
            {
                vehicle_id: _decimal(rate, f"{normalized} {vehicle_id}")
                for vehicle_id, rate in _mapping(
                    raw.get("flat_rates"), f"{normalized} flat_rates"
                ).items()
            }
        ),
    )


def _parse_surcharge(kind: str, raw: Any) -> SurchargeRule:
    try:
        surcharge_kind = SurchargeKind(kind)
    except ValueError as exc:
        raise _issue(f"unknown surcharge kind {kind!r}") from exc
    label = f"{kind} surcharge"
    raw = _mapping(raw, label)
    return SurchargeRule(
        kind=surcharge_kind,
        multiplier=_decimal(_required(raw, "multiplier", label), label),
        description=str(raw.get("description", kind)),
        start_hour=_optional_int(raw.get("start_hour"), f"{label} start_hour"),
        end_hour=_optional_int(raw.get("end_hour"), f"{label} end_hour"),
        weekdays=frozenset(
            _int(day, f"{label} weekdays")
            for day in _sequence(raw.get("weekdays"), f"{label} weekdays")
        ),
    )


def _parse_rounding(raw: Any) -> RoundingPolicy:
    raw = _mapping(raw, "rounding")
    try:
        strategy = RoundingStrategy(raw.get("strategy", RoundingStrategy.AUTO.value))
    except ValueError as exc:
        raise _issue(f"unknown rounding strategy {raw.get('strategy')!r}") from exc
    return RoundingPolicy(
        enabled=bool(raw.get("enabled", True)),
        strategy=strategy,
        threshold=_decimal(raw.get("threshold", 10), "rounding threshold"),
    )


def build_fare_config(data: Mapping[str, Any]) -> FareConfig:
    """Build and validate a :class:`FareConfig` from plain mappings.

    Malformed input of any shape is reported as
    :class:`ConfigurationInvariantViolation`.
    """
    data = _mapping(data, "fare configuration")
    vehicles = {
        vehicle_id: _parse_vehicle(vehicle_id, raw)
        for vehicle_id, raw in _mapping(data.get("vehicles"), "vehicles").items()
    }
    routes = {}
    for key, raw in _mapping(data.get("popular_routes"), "popular_routes").items():
        route = _parse_route(key, raw)
        routes[route.key] = route

    parsed_rules = {
        rule.kind: rule
        for rule in (
            _parse_surcharge(kind, raw)
            for kind, raw in _mapping(data.get("surcharges"), "surcharges").items()
        )
    }
    surcharges = tuple(
        parsed_rules[kind] for kind in _SURCHARGE_ORDER if kind in parsed_rules
    )

    config = FareConfig(
        vehicles=freeze_mapping(vehicles),
        routes=freeze_mapping(routes),
        surcharges=surcharges,
        holidays=frozenset(
            parse_holiday(day) for day in _sequence(data.get("holidays"), "holidays")
        ),
        rounding=_parse_rounding(data.get("rounding")),
        cancellation_fee=_decimal(data.get("cancellation_fee", 0), "cancellation fee"),
    )
    validate_fare_config(config)
    return config


def load_fare_config(path: str | Path | None = None) -> FareConfig:
    """Load a fare configuration from YAML, defaulting to the bundled file."""
    fare_file = Path(path) if path else DEFAULT_FARE_FILE
    with fare_file.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise _issue(f"{fare_file}: invalid YAML ({exc})") from exc
    config = build_fare_config(data)
    logger.info(
        "Loaded fare configuration from %s (%d vehicles, %d routes, %d holidays)",
        fare_file,
        len(config.vehicles),
        len(config.routes),
        len(config.holidays),
    )
    return config


def _tier_issues(vehicle: VehicleClass) -> list[str]:
    issues: list[str] = []
    tiers = vehicle.price_tiers
    if not tiers:
        return [f"{vehicle.id}: no price tiers configured"]
    if tiers[0].min_miles != 0:
        issues.append(f"{vehicle.id}: first tier starts at {tiers[0].min_miles}, not 0")

    for index, tier in enumerate(tiers, start=1):
        if tier.max_miles is not None and tier.max_miles <= tier.min_miles:
            issues.append(f"{vehicle.id}: tier {index} has an empty mileage range")
        if tier.rate_per_mile <= 0:
            issues.append(f"{vehicle.id}: tier {index} rate must be positive")
        if index == 1:
            continue
        previous = tiers[index - 2]
        if previous.max_miles is None:
            issues.append(f"{vehicle.id}: tier {index} follows an unbounded tier")
            continue
        if tier.min_miles > previous.max_miles:
            issues.append(
                f"{vehicle.id}: gap in tier coverage between miles "
                f"{previous.max_miles} and {tier.min_miles}"
            )
        elif tier.min_miles < previous.max_miles:
            issues.append(
                f"{vehicle.id}: tiers {index - 1} and {index} overlap at mile "
                f"{tier.min_miles}"
            )
        if tier.rate_per_mile >= previous.rate_per_mile:
            issues.append(
                f"{vehicle.id}: tier {index} rate is not lower than tier {index - 1}"
            )

    last_max = tiers[-1].max_miles
    if last_max is not None:
        if vehicle.max_service_distance is None:
            issues.append(
                f"{vehicle.id}: tiers end at {last_max} miles but the service "
                "area is unbounded"
            )
        elif last_max != vehicle.max_service_distance:
            issues.append(
                f"{vehicle.id}: tiers end at {last_max} miles, service area is "
                f"{vehicle.max_service_distance}"
            )
    return issues


def validate_fare_config(config: FareConfig) -> None:
    """Check configuration invariants; raise with every issue found."""
    issues: list[str] = []
    if not config.vehicles:
        issues.append("no vehicle classes configured")

    for vehicle_id, vehicle in config.vehicles.items():
        if vehicle_id != vehicle.id:
            issues.append(f"{vehicle_id}: registered under a different id ({vehicle.id})")
        issues.extend(_tier_issues(vehicle))
        if vehicle.airport_fee_base < 0:
            issues.append(f"{vehicle.id}: airport fee cannot be negative")
        if vehicle.hourly_protection_rate <= 0:
            issues.append(f"{vehicle.id}: missing hourly protection rate")
        if vehicle.capacity.max_passengers <= 0:
            issues.append(f"{vehicle.id}: passenger capacity must be positive")
        if vehicle.capacity.max_bags < 0:
            issues.append(f"{vehicle.id}: bag capacity cannot be negative")
        if vehicle.max_service_distance is not None and vehicle.max_service_distance <= 0:
            issues.append(f"{vehicle.id}: service distance must be positive")

    for route in config.routes.values():
        for vehicle_id, rate in route.flat_rates.items():
            if vehicle_id not in config.vehicles:
                issues.append(f"{route.key}: flat rate for unknown vehicle {vehicle_id}")
            if rate <= 0:
                issues.append(f"{route.key}: flat rate for {vehicle_id} must be positive")

    for rule in config.surcharges:
        if rule.multiplier <= 1:
            issues.append(f"{rule.kind.value} surcharge multiplier must exceed 1")
        if rule.kind in (SurchargeKind.NIGHT, SurchargeKind.PEAK):
            hours = (rule.start_hour, rule.end_hour)
            if any(hour is None or not 0 <= hour <= 23 for hour in hours):
                issues.append(f"{rule.kind.value} surcharge needs hours between 0 and 23")
        if rule.kind is SurchargeKind.WEEKEND and not rule.weekdays <= set(range(7)):
            issues.append("weekend surcharge weekdays must be between 0 and 6")

    if config.rounding.threshold < 0:
        issues.append("rounding threshold cannot be negative")
    if config.cancellation_fee < 0:
        issues.append("cancellation fee cannot be negative")

    if issues:
        raise ConfigurationInvariantViolation(issues)


class FareConfigStore:
    """Holds the current configuration snapshot.

    Readers take the snapshot reference once per calculation. Writers build a
    replacement under a lock, validate it and swap the reference, so readers
    never observe a partially updated table.
    """

    def __init__(self, config: FareConfig, *, validate: bool = True) -> None:
        if validate:
            validate_fare_config(config)
        self._config = config
        self._lock = threading.Lock()

    def snapshot(self) -> FareConfig:
        return self._config

    def _replace(
        self, mutate: Callable[[FareConfig], FareConfig]
    ) -> FareConfig | None:
        """Apply ``mutate`` to the current snapshot under the writer lock.

        Returns the new snapshot, or ``None`` when ``mutate`` handed back the
        current one unchanged.
        """
        with self._lock:
            current = self._config
            candidate = mutate(current)
            if candidate is current:
                return None
            try:
                validate_fare_config(candidate)
            except ConfigurationInvariantViolation as exc:
                logger.warning("Rejected fare configuration change: %s", exc)
                raise
            self._config = candidate
            return candidate

    def get_vehicle_config(self, vehicle_id: str) -> VehicleClass:
        vehicle = self._config.vehicle(vehicle_id)
        if vehicle is None:
            raise UnknownVehicleError(vehicle_id)
        return vehicle

    def list_vehicles(self) -> list[VehicleClass]:
        return list(self._config.vehicles.values())

    def holidays(self) -> list[datetime.date]:
        return sorted(self._config.holidays)

    def update_vehicle_config(self, vehicle_id: str, **changes: Any) -> VehicleClass:
        """Replace fields of a vehicle class.

        ``price_tiers`` and ``capacity`` accept either model instances or the
        plain mappings used in the YAML file.
        """
        if "price_tiers" in changes:
            tiers = changes["price_tiers"]
            if tiers and not isinstance(tiers[0], PriceTier):
                tiers = _parse_tiers(vehicle_id, tiers)
            changes["price_tiers"] = tuple(tiers)
        if isinstance(changes.get("capacity"), Mapping):
            changes["capacity"] = _parse_capacity(vehicle_id, changes["capacity"])
        for name in ("airport_fee_base", "hourly_protection_rate"):
            if name in changes:
                changes[name] = _decimal(changes[name], f"{vehicle_id} {name}")
        if "max_service_distance" in changes:
            changes["max_service_distance"] = _optional_decimal(
                changes["max_service_distance"], vehicle_id
            )

        def mutate(config: FareConfig) -> FareConfig:
            current = config.vehicle(vehicle_id)
            if current is None:
                raise UnknownVehicleError(vehicle_id)
            vehicles = dict(config.vehicles)
            vehicles[vehicle_id] = replace(current, **changes)
            return replace(config, vehicles=freeze_mapping(vehicles))

        updated = self._replace(mutate)
        logger.info("Updated %s configuration: %s", vehicle_id, sorted(changes))
        return updated.vehicles[vehicle_id]

    def add_holiday(self, day: datetime.date | str) -> bool:
        """Add a holiday; return ``False`` when it was already configured."""
        holiday = parse_holiday(day)
        updated = self._replace(
            lambda config: config
            if holiday in config.holidays
            else replace(config, holidays=config.holidays | {holiday})
        )
        added = updated is not None
        if added:
            logger.info("Added holiday %s", holiday.isoformat())
        return added

    def remove_holiday(self, day: datetime.date | str) -> bool:
        holiday = parse_holiday(day)
        updated = self._replace(
            lambda config: config
            if holiday not in config.holidays
            else replace(config, holidays=config.holidays - {holiday})
        )
        removed = updated is not None
        if removed:
            logger.info("Removed holiday %s", holiday.isoformat())
        return removed

    def set_rounding(
        self,
        *,
        enabled: bool | None = None,
        strategy: RoundingStrategy | str | None = None,
        threshold: Decimal | int | str | None = None,
    ) -> RoundingPolicy:
        """Toggle psychological pricing or switch strategy for A/B tests."""
        changes: dict[str, Any] = {}
        if enabled is not None:
            changes["enabled"] = enabled
        if strategy is not None:
            try:
                changes["strategy"] = RoundingStrategy(strategy)
            except ValueError as exc:
                raise _issue(f"unknown rounding strategy {strategy!r}") from exc
        if threshold is not None:
            changes["threshold"] = _decimal(threshold, "rounding threshold")
        updated = self._replace(
            lambda config: replace(config, rounding=replace(config.rounding, **changes))
        )
        logger.info(
            "Psychological pricing %s with strategy %s",
            "enabled" if updated.rounding.enabled else "disabled",
            updated.rounding.strategy.value,
        )
        return updated.rounding

    def update_surcharge(
        self, kind: SurchargeKind | str, multiplier: Decimal | float | str
    ) -> SurchargeRule:
        surcharge_kind = SurchargeKind(kind)
        new_multiplier = _decimal(multiplier, f"{surcharge_kind.value} surcharge")

        def mutate(config: FareConfig) -> FareConfig:
            if not any(rule.kind is surcharge_kind for rule in config.surcharges):
                raise ConfigurationInvariantViolation(
                    [f"{surcharge_kind.value} surcharge is not configured"]
                )
            rules = tuple(
                replace(rule, multiplier=new_multiplier)
                if rule.kind is surcharge_kind
                else rule
                for rule in config.surcharges
            )
            return replace(config, surcharges=rules)

        updated = self._replace(mutate)
        logger.info(
            "Set %s surcharge multiplier to %s", surcharge_kind.value, new_multiplier
        )
        return next(rule for rule in updated.surcharges if rule.kind is surcharge_kind)


__all__ = [
    "DEFAULT_FARE_FILE",
    "FareConfigStore",
    "build_fare_config",
    "load_fare_config",
    "parse_holiday",
    "validate_fare_config",
]
