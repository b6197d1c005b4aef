"""
backend/app/services/odds_service.py

Purpose:
    Combined-odds and payout arithmetic for parlay bets. Pure functions, no
    I/O. All money values are rounded half-up to two decimals.

Dependencies:
    - decimal
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping

_CENT = Decimal("0.01")


def round_money(value: float | Decimal) -> float:
    """Round half-up to 2 decimals (2.675 -> 2.68, unlike built-in round)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return float(value.quantize(_CENT, rounding=ROUND_HALF_UP))


def _odd_factor(raw: Any) -> Decimal:
    """Numeric odd of one selection. Missing, non-numeric, zero or NaN count as 1."""
    if raw is None or isinstance(raw, bool):
        return Decimal(1)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return Decimal(1)
    if value == 0 or not math.isfinite(value):
        return Decimal(1)
    return Decimal(str(value))


def calc_combined_odd(selections: Iterable[Mapping[str, Any]]) -> float:
    """Product of all selection odds, rounded to 2 decimals.

    Returns 0 for an empty sequence: a bet cannot exist without selections,
    so 0 marks failed upstream validation rather than a priced bet.
    """
    selections = list(selections)
    if not selections:
        return 0.0

    total = Decimal(1)
    for sel in selections:
        total *= _odd_factor(sel.get("odd"))
    return round_money(total)


def calc_potential_win(stake: float, combined_odd: float) -> float:
    """stake * combined_odd, rounded to 2 decimals."""
    return round_money(Decimal(str(stake)) * Decimal(str(combined_odd)))
