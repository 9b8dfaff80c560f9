"""Time-based surcharge evaluation."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from app.models.fare_config import FareConfig, SurchargeKind, SurchargeRule
from app.services.rounding_service import to_money


@dataclass(frozen=True, slots=True)
class AppliedSurcharge:
    """A surcharge that contributed to a quote."""

    kind: SurchargeKind
    multiplier: Decimal
    amount: Decimal
    description: str

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind.value,
            "multiplier": str(self.multiplier),
            "amount": f"{self.amount:.2f}",
            "description": self.description,
        }


@dataclass(frozen=True, slots=True)
class SurgeStatus:
    """Which surcharges would apply at a given time, without pricing a trip."""

    active: bool
    rules: tuple[SurchargeRule, ...]
    total_multiplier: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "active": self.active,
            "rules": [
                {
                    "kind": rule.kind.value,
                    "multiplier": str(rule.multiplier),
                    "description": rule.description,
                }
                for rule in self.rules
            ],
            "total_multiplier": str(self.total_multiplier),
        }


def _in_hour_window(hour: int, start: int | None, end: int | None) -> bool:
    if start is None or end is None:
        return False
    if start <= end:
        return start <= hour < end
    return hour >= start or hour < end


def rule_applies(
    rule: SurchargeRule,
    trip_at: datetime.datetime,
    holidays: Iterable[datetime.date],
) -> bool:
    """Evaluate a single rule against the trip's local date and time."""
    if rule.kind is SurchargeKind.HOLIDAY:
        return trip_at.date() in holidays
    if rule.kind is SurchargeKind.WEEKEND:
        return trip_at.weekday() in rule.weekdays
    return _in_hour_window(trip_at.hour, rule.start_hour, rule.end_hour)


def active_rules(
    config: FareConfig, trip_at: datetime.datetime
) -> tuple[SurchargeRule, ...]:
    return tuple(
        rule
        for rule in config.surcharges
        if rule_applies(rule, trip_at, config.holidays)
    )


def apply_surcharges(
    base_fare: Decimal,
    config: FareConfig,
    trip_at: datetime.datetime,
) -> tuple[Decimal, list[AppliedSurcharge]]:
    """Compound every active rule against the same pre-surcharge base.

    Each rule's dollar amount is ``base_fare * (multiplier - 1)`` and the
    surcharged price is ``base_fare`` times the product of all multipliers.
    """
    multiplier = Decimal("1")
    applied: list[AppliedSurcharge] = []
    for rule in active_rules(config, trip_at):
        multiplier *= rule.multiplier
        applied.append(
            AppliedSurcharge(
                kind=rule.kind,
                multiplier=rule.multiplier,
                amount=to_money(base_fare * (rule.multiplier - 1)),
                description=rule.description,
            )
        )
    return to_money(base_fare * multiplier), applied


def surge_status(config: FareConfig, trip_at: datetime.datetime) -> SurgeStatus:
    rules = active_rules(config, trip_at)
    total = Decimal("1")
    for rule in rules:
        total *= rule.multiplier
    return SurgeStatus(active=bool(rules), rules=rules, total_multiplier=total)


__all__ = [
    "AppliedSurcharge",
    "SurgeStatus",
    "active_rules",
    "apply_surcharges",
    "rule_applies",
    "surge_status",
]
