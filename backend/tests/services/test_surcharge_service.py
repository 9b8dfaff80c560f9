"""Time-window surcharge tests."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from app.models import FareConfig, SurchargeKind
from app.services.surcharge_service import (
    active_rules,
    apply_surcharges,
    rule_applies,
    surge_status,
)


def _kinds(config: FareConfig, when: datetime) -> list[SurchargeKind]:
    return [rule.kind for rule in active_rules(config, when)]


@pytest.mark.parametrize(
    ("when", "expected"),
    [
        (datetime(2025, 3, 5, 21, 59), []),
        (datetime(2025, 3, 5, 22, 0), [SurchargeKind.NIGHT]),
        (datetime(2025, 3, 5, 23, 30), [SurchargeKind.NIGHT]),
        (datetime(2025, 3, 6, 0, 15), [SurchargeKind.NIGHT]),
        (datetime(2025, 3, 6, 5, 59), [SurchargeKind.NIGHT]),
        (datetime(2025, 3, 6, 6, 0), []),
        (datetime(2025, 3, 6, 7, 0), [SurchargeKind.PEAK]),
        (datetime(2025, 3, 6, 8, 59), [SurchargeKind.PEAK]),
        (datetime(2025, 3, 6, 9, 0), []),
    ],
)
def test_hour_windows(fare_config: FareConfig, when: datetime, expected: list) -> None:
    assert _kinds(fare_config, when) == expected


def test_weekend_uses_local_weekday(fare_config: FareConfig) -> None:
    assert _kinds(fare_config, datetime(2025, 3, 8, 12)) == [SurchargeKind.WEEKEND]
    assert _kinds(fare_config, datetime(2025, 3, 9, 12)) == [SurchargeKind.WEEKEND]
    assert _kinds(fare_config, datetime(2025, 3, 10, 12)) == []


def test_holiday_matches_calendar_date(fare_config: FareConfig) -> None:
    holiday_rule = next(
        rule for rule in fare_config.surcharges if rule.kind is SurchargeKind.HOLIDAY
    )
    assert rule_applies(holiday_rule, datetime(2025, 12, 25, 14), fare_config.holidays)
    assert not rule_applies(holiday_rule, datetime(2025, 12, 26, 14), fare_config.holidays)
    # Christmas 2025 is a Thursday evening: holiday only.
    assert _kinds(fare_config, datetime(2025, 12, 25, 18)) == [SurchargeKind.HOLIDAY]
    assert date(2025, 7, 4) in fare_config.holidays


def test_amounts_are_computed_from_the_same_base(fare_config: FareConfig) -> None:
    # New Year's Day 2025 at 23:00: night and holiday together.
    total, applied = apply_surcharges(
        Decimal("100.00"), fare_config, datetime(2025, 1, 1, 23)
    )

    assert [item.kind for item in applied] == [
        SurchargeKind.NIGHT,
        SurchargeKind.HOLIDAY,
    ]
    assert [item.amount for item in applied] == [Decimal("15.00"), Decimal("25.00")]
    assert total == Decimal("143.75")


def test_no_active_rules_leaves_base(fare_config: FareConfig) -> None:
    total, applied = apply_surcharges(
        Decimal("80.40"), fare_config, datetime(2025, 3, 5, 12)
    )
    assert total == Decimal("80.40")
    assert applied == []


def test_surge_status_serializes(fare_config: FareConfig) -> None:
    status = surge_status(fare_config, datetime(2025, 3, 8, 22, 30))

    assert status.active
    assert status.total_multiplier == Decimal("1.15") * Decimal("1.10")
    payload = status.to_dict()
    assert payload["active"] is True
    assert [rule["kind"] for rule in payload["rules"]] == ["night", "weekend"]
