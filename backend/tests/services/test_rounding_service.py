"""Psychological rounding strategy tests."""

from __future__ import annotations

from decimal import Decimal

import pytest

from app.models import RoundingPolicy, RoundingStrategy
from app.services.rounding_service import (
    STRATEGIES,
    apply_psychological_pricing,
    nearest_ending,
    round_auto,
)

POLICY = RoundingPolicy()


def _prices(start: str, stop: str, step: str = "0.37") -> list[Decimal]:
    prices = []
    current, end, increment = Decimal(start), Decimal(stop), Decimal(step)
    while current < end:
        prices.append(current)
        current += increment
    return prices


@pytest.mark.parametrize(
    ("price", "expected"),
    [
        ("23", "19"),
        ("25", "19"),
        ("35", "29"),
        ("36", "39"),
        ("45", "39"),
        ("46.50", "49"),
        ("49.60", "49"),
        ("50", "55"),
        ("73.53", "75"),
        ("127", "125"),
        ("149.60", "145"),
        ("150", "159"),
        ("247", "249"),
        ("298.38", "299"),
        ("452.50", "449"),
        ("499.60", "499"),
        ("523", "545"),
        ("580", "595"),
        ("1250", "1245"),
    ],
)
def test_auto_strategy_bands(price: str, expected: str) -> None:
    assert apply_psychological_pricing(Decimal(price), POLICY) == Decimal(expected)


def test_fixed_endings() -> None:
    assert apply_psychological_pricing(
        Decimal("245"), POLICY, RoundingStrategy.ALWAYS_9
    ) == Decimal("249.00")
    assert apply_psychological_pricing(
        Decimal("247"), POLICY, RoundingStrategy.ALWAYS_5
    ) == Decimal("245.00")
    # Equidistant candidates resolve upward.
    assert apply_psychological_pricing(
        Decimal("250"), POLICY, RoundingStrategy.ALWAYS_5
    ) == Decimal("255.00")


def test_prices_under_threshold_only_quantize() -> None:
    assert apply_psychological_pricing(Decimal("9.994"), POLICY) == Decimal("9.99")
    assert apply_psychological_pricing(
        Decimal("9.994"), RoundingPolicy(threshold=Decimal("0"))
    ) == Decimal("9.00")


def test_disabled_policy_and_strategy_leave_cents() -> None:
    off = RoundingPolicy(enabled=False)
    assert apply_psychological_pricing(Decimal("123.456"), off) == Decimal("123.46")
    assert apply_psychological_pricing(
        Decimal("123.456"), POLICY, RoundingStrategy.DISABLED
    ) == Decimal("123.46")


@pytest.mark.parametrize("strategy", list(RoundingStrategy))
def test_rounding_is_idempotent(strategy: RoundingStrategy) -> None:
    for price in _prices("0", "1200"):
        once = apply_psychological_pricing(price, POLICY, strategy)
        assert apply_psychological_pricing(once, POLICY, strategy) == once


def test_auto_stays_close_below_premium_band() -> None:
    # Under $50 amounts ending 0 to 5 drop to the previous 9, so 15.49 goes to 9.
    for price in _prices("10", "50"):
        rounded = apply_psychological_pricing(price, POLICY)
        assert abs(rounded - price) <= Decimal("6.5")
    for price in _prices("50", "150") + _prices("154.5", "500"):
        rounded = apply_psychological_pricing(price, POLICY)
        assert abs(rounded - price) <= Decimal("5.5")


def test_small_fares_drop_to_previous_nine() -> None:
    assert nearest_ending(Decimal("35"), 9, drop_within=6) == Decimal("29")
    assert nearest_ending(Decimal("36"), 9, drop_within=6) == Decimal("39")
    assert nearest_ending(Decimal("30"), 9, drop_within=6) == Decimal("29")
    assert round_auto(Decimal("15.49")) == Decimal("9")


def test_auto_never_crosses_band_ceiling() -> None:
    for price in _prices("10", "500"):
        rounded = round_auto(price)
        for ceiling in (Decimal("50"), Decimal("150"), Decimal("500")):
            if price < ceiling:
                assert rounded < ceiling


def test_nearest_ending_respects_floor() -> None:
    assert nearest_ending(Decimal("500"), 45, 50, floor=Decimal("500")) == Decimal("545")
    assert nearest_ending(Decimal("52"), 5, floor=Decimal("50")) == Decimal("55")


def test_every_strategy_is_registered() -> None:
    assert set(STRATEGIES) == set(RoundingStrategy)
