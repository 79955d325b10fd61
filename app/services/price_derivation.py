"""
Absolute prices derived from an entry price and point distances.

Everything here is plain signed ``Decimal`` addition: no rounding, no state.
Derived prices are always recomputed from the current entry price and
direction, never adjusted incrementally.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence

from app.models.enums import Direction
from app.models.payloads import Target


def stop_loss_price(entry: Decimal, sl_points: Decimal, direction: Direction) -> Decimal:
    """Stop sits below entry for BUY and above it for SELL."""
    return entry - Direction(direction).sign * sl_points


def break_even_price(entry: Decimal, be_points: Decimal, direction: Direction) -> Decimal:
    return entry + Direction(direction).sign * be_points


def target_price(entry: Decimal, points: Decimal, direction: Direction) -> Decimal:
    return entry + Direction(direction).sign * points


def derive_targets(targets: Optional[Sequence[Target]], entry: Decimal, direction: Direction) -> List[Target]:
    """Return copies of ``targets`` (same order) with ``price`` filled in."""
    return [
        Target(points=t.points, size=t.size, price=target_price(entry, t.points, direction))
        for t in (targets or [])
    ]


@dataclass(frozen=True)
class DerivedPrices:
    sl_price: Decimal
    be_price: Optional[Decimal]
    targets: List[Target]


def derive_prices(
    entry: Decimal,
    direction: Direction,
    sl_points: Decimal,
    be_points: Optional[Decimal] = None,
    targets: Optional[Sequence[Target]] = None,
) -> DerivedPrices:
    """Derive every price a position carries in one pass."""
    return DerivedPrices(
        sl_price=stop_loss_price(entry, sl_points, direction),
        be_price=break_even_price(entry, be_points, direction) if be_points is not None else None,
        targets=derive_targets(targets, entry, direction),
    )
