"""Fare configuration loading, validation and update tests."""

from __future__ import annotations

import copy
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
import yaml

from app.models import RoundingStrategy, SurchargeKind
from app.services.fare_config_service import (
    DEFAULT_FARE_FILE,
    FareConfigStore,
    build_fare_config,
    load_fare_config,
)
from app.services.pricing_errors import (
    ConfigurationInvariantViolation,
    UnknownVehicleError,
)


@pytest.fixture()
def raw_config() -> dict[str, Any]:
    with DEFAULT_FARE_FILE.open(encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def _issues(data: dict[str, Any]) -> list[str]:
    with pytest.raises(ConfigurationInvariantViolation) as excinfo:
        build_fare_config(data)
    return excinfo.value.issues


def test_bundled_tables_load() -> None:
    config = load_fare_config()

    assert list(config.vehicles) == ["tesla", "escalade", "sprinter"]
    assert config.route("mia", "mco").description == "Miami to Orlando"
    assert config.route("MIA", "JFK") is None
    assert [rule.kind for rule in config.surcharges] == [
        SurchargeKind.NIGHT,
        SurchargeKind.WEEKEND,
        SurchargeKind.PEAK,
        SurchargeKind.HOLIDAY,
    ]
    assert config.rounding.strategy is RoundingStrategy.AUTO
    assert config.cancellation_fee == Decimal("25")


def test_load_from_custom_path(tmp_path: Path, raw_config: dict[str, Any]) -> None:
    raw_config["cancellation_fee"] = 40
    fare_file = tmp_path / "fares.yaml"
    fare_file.write_text(yaml.safe_dump(raw_config), encoding="utf-8")

    assert load_fare_config(fare_file).cancellation_fee == Decimal("40")


def test_gap_between_tiers_is_reported(raw_config: dict[str, Any]) -> None:
    raw_config["vehicles"]["tesla"]["price_tiers"][1]["min_miles"] = 20

    issues = _issues(raw_config)
    assert any("gap in tier coverage" in issue for issue in issues)


def test_overlapping_tiers_are_reported(raw_config: dict[str, Any]) -> None:
    raw_config["vehicles"]["escalade"]["price_tiers"][2]["min_miles"] = 40

    assert any("overlap" in issue for issue in _issues(raw_config))


def test_rates_must_decrease(raw_config: dict[str, Any]) -> None:
    raw_config["vehicles"]["sprinter"]["price_tiers"][3]["rate_per_mile"] = 5

    assert any("not lower than" in issue for issue in _issues(raw_config))


def test_tiers_must_reach_service_area(raw_config: dict[str, Any]) -> None:
    raw_config["vehicles"]["tesla"]["max_service_distance"] = 300

    assert any("service area is 300" in issue for issue in _issues(raw_config))


def test_every_issue_is_collected(raw_config: dict[str, Any]) -> None:
    raw_config["vehicles"]["tesla"]["hourly_protection_rate"] = 0
    raw_config["popular_routes"]["MIA-MCO"]["flat_rates"]["limo"] = 900
    raw_config["surcharges"]["peak"]["multiplier"] = 0.9
    raw_config["surcharges"]["night"]["end_hour"] = 24

    issues = _issues(raw_config)
    assert "tesla: missing hourly protection rate" in issues
    assert "MIA-MCO: flat rate for unknown vehicle limo" in issues
    assert "peak surcharge multiplier must exceed 1" in issues
    assert "night surcharge needs hours between 0 and 23" in issues


def test_malformed_values_are_rejected(raw_config: dict[str, Any]) -> None:
    bad_holiday = copy.deepcopy(raw_config)
    bad_holiday["holidays"].append("next tuesday")
    assert "not an ISO" in _issues(bad_holiday)[0]

    bad_kind = copy.deepcopy(raw_config)
    bad_kind["surcharges"]["storm"] = {"multiplier": 1.5}
    assert _issues(bad_kind) == ["unknown surcharge kind 'storm'"]


def test_updates_replace_the_snapshot(store: FareConfigStore) -> None:
    before = store.snapshot()

    updated = store.update_vehicle_config("tesla", hourly_protection_rate="110")

    assert updated.hourly_protection_rate == Decimal("110")
    assert store.snapshot() is not before
    assert before.vehicles["tesla"].hourly_protection_rate == Decimal("100")
    assert store.get_vehicle_config("tesla").hourly_protection_rate == Decimal("110")


def test_rejected_update_keeps_previous_tables(store: FareConfigStore) -> None:
    before = store.snapshot()

    with pytest.raises(ConfigurationInvariantViolation):
        store.update_vehicle_config(
            "escalade",
            price_tiers=[
                {"min_miles": 0, "max_miles": 50, "rate_per_mile": 3.00},
                {"min_miles": 50, "max_miles": 280, "rate_per_mile": 3.50},
            ],
        )

    assert store.snapshot() is before


def test_update_unknown_vehicle(store: FareConfigStore) -> None:
    with pytest.raises(UnknownVehicleError):
        store.update_vehicle_config("limo", airport_fee_base=5)
    with pytest.raises(UnknownVehicleError):
        store.get_vehicle_config("limo")


def test_capacity_update_accepts_mapping(store: FareConfigStore) -> None:
    vehicle = store.update_vehicle_config(
        "escalade", capacity={"max_passengers": 6, "max_bags": 6}
    )
    assert vehicle.capacity.max_passengers == 6


def test_holiday_management(store: FareConfigStore) -> None:
    assert store.add_holiday("2025-05-26")
    assert not store.add_holiday(date(2025, 5, 26))
    assert date(2025, 5, 26) in store.holidays()
    assert store.holidays() == sorted(store.holidays())

    assert store.remove_holiday("2025-05-26")
    assert not store.remove_holiday("2025-05-26")
    with pytest.raises(ConfigurationInvariantViolation):
        store.add_holiday("26/05/2025")


def test_rounding_and_surcharge_controls(store: FareConfigStore) -> None:
    policy = store.set_rounding(enabled=False)
    assert not policy.enabled
    assert policy.strategy is RoundingStrategy.AUTO

    policy = store.set_rounding(enabled=True, strategy="always9", threshold=20)
    assert policy.strategy is RoundingStrategy.ALWAYS_9
    assert policy.threshold == Decimal("20")

    rule = store.update_surcharge(SurchargeKind.NIGHT, "1.3")
    assert rule.multiplier == Decimal("1.3")

    with pytest.raises(ConfigurationInvariantViolation):
        store.update_surcharge("weekend", "1.0")
    with pytest.raises(ConfigurationInvariantViolation):
        store.set_rounding(threshold=-1)
    weekend = next(r for r in store.snapshot().surcharges if r.kind is SurchargeKind.WEEKEND)
    assert weekend.multiplier == Decimal("1.1")


def test_missing_required_fields_are_reported(raw_config: dict[str, Any]) -> None:
    no_rate = copy.deepcopy(raw_config)
    del no_rate["vehicles"]["tesla"]["price_tiers"][0]["rate_per_mile"]
    assert _issues(no_rate) == ["tesla tier 1: missing rate_per_mile"]

    no_multiplier = copy.deepcopy(raw_config)
    del no_multiplier["surcharges"]["peak"]["multiplier"]
    assert _issues(no_multiplier) == ["peak surcharge: missing multiplier"]


def test_numeric_strings_are_coerced(raw_config: dict[str, Any]) -> None:
    raw_config["surcharges"]["night"]["start_hour"] = "22"
    raw_config["vehicles"]["tesla"]["capacity"]["max_passengers"] = "4"

    config = build_fare_config(raw_config)

    night = next(r for r in config.surcharges if r.kind is SurchargeKind.NIGHT)
    assert night.start_hour == 22
    assert config.vehicles["tesla"].capacity.max_passengers == 4


@pytest.mark.parametrize(
    ("path", "value", "expected"),
    [
        (
            ("surcharges", "night", "start_hour"),
            "late",
            "night surcharge start_hour: not a whole number ('late')",
        ),
        (
            ("surcharges", "night", "start_hour"),
            22.5,
            "night surcharge start_hour: not a whole number (22.5)",
        ),
        (
            ("vehicles", "tesla", "capacity", "max_passengers"),
            "four",
            "tesla max_passengers: not a number ('four')",
        ),
        (
            ("vehicles", "tesla", "airport_fee_base"),
            "ten",
            "tesla: not a number ('ten')",
        ),
        (
            ("vehicles", "tesla", "price_tiers"),
            {"min_miles": 0},
            "tesla price_tiers: expected a list, got dict",
        ),
        (
            ("surcharges", "weekend"),
            [1.1],
            "weekend surcharge: expected a mapping, got list",
        ),
        (("rounding", "strategy"), "always7", "unknown rounding strategy 'always7'"),
    ],
)
def test_malformed_fields_are_reported(
    raw_config: dict[str, Any], path: tuple[str, ...], value: Any, expected: str
) -> None:
    target = raw_config
    for key in path[:-1]:
        target = target[key]
    target[path[-1]] = value

    assert _issues(raw_config) == [expected]


def test_tier_must_be_a_mapping(raw_config: dict[str, Any]) -> None:
    raw_config["vehicles"]["escalade"]["price_tiers"][1] = [15, 50, 3.95]

    assert _issues(raw_config) == ["escalade tier 2: expected a mapping, got list"]


def test_invalid_yaml_is_reported(tmp_path: Path) -> None:
    fare_file = tmp_path / "fares.yaml"
    fare_file.write_text("vehicles: [tesla\n", encoding="utf-8")

    with pytest.raises(ConfigurationInvariantViolation) as excinfo:
        load_fare_config(fare_file)
    assert "invalid YAML" in excinfo.value.issues[0]


def test_concurrent_holiday_changes_report_one_winner(store: FareConfigStore) -> None:
    day = date(2025, 10, 13)

    with ThreadPoolExecutor(max_workers=8) as pool:
        added = list(pool.map(lambda _: store.add_holiday(day), range(32)))
    assert added.count(True) == 1
    assert day in store.holidays()

    with ThreadPoolExecutor(max_workers=8) as pool:
        removed = list(pool.map(lambda _: store.remove_holiday(day), range(32)))
    assert removed.count(True) == 1
    assert day not in store.holidays()
