"""
Realized PnL accounting for the partial exit ledger.

Pure functions over ``Decimal``. Rounding is half away from zero and happens
at fixed points only: an exit's PnL (2dp, once, when the exit is recorded),
the weighted average exit price (5dp) and the closing ratios (4dp).
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from app.core.timeutils import as_utc
from app.models.enums import Direction

# Remaining sizes smaller than this are treated as fully closed.
REMAINING_SIZE_EPSILON = Decimal("0.0001")

ZERO = Decimal("0")
CENT = Decimal("0.01")
PRICE_QUANTUM = Decimal("0.00001")
RATIO_QUANTUM = Decimal("0.0001")


def quantize(value: Decimal, quantum: Decimal) -> Decimal:
    return Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


def exit_pnl(entry_price: Decimal, exit_price: Decimal, size: Decimal, direction: Direction) -> Decimal:
    """Signed PnL of one exit, rounded to cents."""
    return quantize((exit_price - entry_price) * size * Direction(direction).sign, CENT)


def is_flat(remaining_size: Decimal) -> bool:
    return abs(remaining_size) < REMAINING_SIZE_EPSILON


def remaining_after_exit(remaining_size: Decimal, exit_size: Decimal) -> Decimal:
    remaining = remaining_size - exit_size
    return ZERO if is_flat(remaining) else remaining


def weighted_average_exit_price(exits: Iterable[Tuple[Decimal, Decimal]]) -> Optional[Decimal]:
    """Size-weighted mean of ``(price, size)`` pairs; None for an empty ledger."""
    total_weighted = ZERO
    total_size = ZERO
    for price, size in exits:
        total_weighted += price * size
        total_size += size
    if total_size <= 0:
        return None
    return quantize(total_weighted / total_size, PRICE_QUANTUM)


def duration_minutes(opened_at: datetime, closed_at: datetime) -> int:
    """Whole minutes between open and close; clock skew never goes negative."""
    opened_at, closed_at = as_utc(opened_at), as_utc(closed_at)
    if closed_at <= opened_at:
        return 0
    seconds = Decimal(str((closed_at - opened_at).total_seconds()))
    return int(quantize(seconds / 60, Decimal("1")))


@dataclass(frozen=True)
class FinalMetrics:
    pnl: Decimal
    pnl_percent: Decimal
    risk_reward: Decimal
    duration_minutes: int


def final_metrics(
    exit_pnls: Iterable[Decimal],
    entry_price: Decimal,
    size: Decimal,
    sl_points: Decimal,
    opened_at: datetime,
    closed_at: datetime,
) -> FinalMetrics:
    """Closing figures for a trade, computed once from its whole ledger."""
    pnl = quantize(sum(exit_pnls, ZERO), CENT)

    risk_amount = size * sl_points
    risk_reward = quantize(pnl / risk_amount, RATIO_QUANTUM) if risk_amount > 0 else ZERO

    entry_value = entry_price * size
    pnl_percent = quantize(pnl / entry_value * 100, RATIO_QUANTUM) if entry_value > 0 else ZERO

    return FinalMetrics(
        pnl=pnl,
        pnl_percent=pnl_percent,
        risk_reward=risk_reward,
        duration_minutes=duration_minutes(opened_at, closed_at),
    )
