"""Psychological price rounding.

Prices are rounded to the nearest dollar and then moved to the closest
"friendly" ending (9, 5, 45/95). Each strategy is a plain function registered
in ``STRATEGIES`` so that pricing can switch strategies without touching the
fare computation itself.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Callable

from app.models.fare_config import RoundingPolicy, RoundingStrategy

MONEY_PLACES = Decimal("0.01")
_DOLLAR = Decimal("1")

Rounder = Callable[[Decimal], Decimal]


def to_money(value: Decimal | float | int | str) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def nearest_ending(
    price: Decimal,
    ending: int,
    step: int = 10,
    *,
    floor: Decimal = Decimal("0"),
    ceiling: Decimal | None = None,
    drop_within: int | None = None,
) -> Decimal:
    """Return the value closest to ``price`` that is ``ending`` modulo ``step``.

    Ties resolve upward. With ``drop_within`` the lower candidate wins
    whenever ``price`` is at most that far above it, nearest or not. The
    result is pushed back inside ``[floor, ceiling)`` one step at a time when
    the chosen candidate falls outside it.
    """
    step_d = Decimal(step)
    ending_d = Decimal(ending)
    lower = ((price - ending_d) / step_d).to_integral_value(ROUND_FLOOR) * step_d
    lower += ending_d
    upper = lower + step_d
    if drop_within is not None:
        candidate = lower if price - lower <= drop_within else upper
    else:
        candidate = upper if upper - price <= price - lower else lower
    while candidate < floor:
        candidate += step_d
    if ceiling is not None:
        while candidate >= ceiling and candidate - step_d >= floor:
            candidate -= step_d
    return candidate


def _whole_dollars(price: Decimal) -> Decimal:
    return price.quantize(_DOLLAR, rounding=ROUND_HALF_UP)


def round_always_9(price: Decimal) -> Decimal:
    return nearest_ending(_whole_dollars(price), 9)


def round_always_5(price: Decimal) -> Decimal:
    return nearest_ending(_whole_dollars(price), 5)


def round_auto(price: Decimal) -> Decimal:
    """Pick the ending from the price band.

    Under $50 and $150-$500 end in 9, $50-$150 ends in 5, and $500 and up
    ends in 45 or 95. Under $50 a dollar amount ending in 0 to 5 drops to the
    previous 9 (35 becomes 29) and one ending in 6 to 8 moves up.
    """
    dollars = _whole_dollars(price)
    if price < 50:
        return nearest_ending(dollars, 9, ceiling=Decimal("50"), drop_within=6)
    if price < 150:
        return nearest_ending(
            dollars, 5, floor=Decimal("50"), ceiling=Decimal("150")
        )
    if price < 500:
        return nearest_ending(
            dollars, 9, floor=Decimal("150"), ceiling=Decimal("500")
        )
    return nearest_ending(dollars, 45, 50, floor=Decimal("500"))


def round_disabled(price: Decimal) -> Decimal:
    return price


STRATEGIES: dict[RoundingStrategy, Rounder] = {
    RoundingStrategy.AUTO: round_auto,
    RoundingStrategy.ALWAYS_9: round_always_9,
    RoundingStrategy.ALWAYS_5: round_always_5,
    RoundingStrategy.DISABLED: round_disabled,
}


def apply_psychological_pricing(
    price: Decimal,
    policy: RoundingPolicy,
    strategy: RoundingStrategy | None = None,
) -> Decimal:
    """Round ``price`` for display according to ``policy``.

    Prices under the policy threshold, or any price when the policy is
    disabled, are only quantized to cents.
    """
    price = to_money(price)
    if not policy.enabled or price < policy.threshold:
        return price
    rounder = STRATEGIES[strategy or policy.strategy]
    return to_money(rounder(price))


__all__ = [
    "MONEY_PLACES",
    "STRATEGIES",
    "apply_psychological_pricing",
    "nearest_ending",
    "round_always_5",
    "round_always_9",
    "round_auto",
    "round_disabled",
    "to_money",
]
