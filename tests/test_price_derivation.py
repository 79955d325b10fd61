from decimal import Decimal

from hypothesis import given, settings, strategies as st

from app.models.enums import Direction
from app.models.payloads import Target
from app.services.price_derivation import (
    break_even_price,
    derive_prices,
    derive_targets,
    stop_loss_price,
    target_price,
)

prices = st.decimals(min_value=Decimal("0.0001"), max_value=Decimal("100000"), places=4)
points = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("5000"), places=2)
directions = st.sampled_from([Direction.BUY, Direction.SELL])


@given(entry=prices, distance=points)
@settings(max_examples=100, deadline=None)
def test_stop_and_target_move_in_opposite_directions(entry, distance):
    assert stop_loss_price(entry, distance, Direction.BUY) == entry - distance
    assert target_price(entry, distance, Direction.BUY) == entry + distance
    assert stop_loss_price(entry, distance, Direction.SELL) == entry + distance
    assert target_price(entry, distance, Direction.SELL) == entry - distance


@given(entry=prices, distance=points, direction=directions)
@settings(max_examples=100, deadline=None)
def test_stop_and_target_are_mirrored_around_entry(entry, distance, direction):
    sl = stop_loss_price(entry, distance, direction)
    tp = target_price(entry, distance, direction)
    assert sl + tp == entry * 2


@given(entry=prices, sl=points, be=points, tp=points, direction=directions)
@settings(max_examples=50, deadline=None)
def test_derive_prices_is_idempotent(entry, sl, be, tp, direction):
    targets = [Target(points=tp, size=Decimal("1"))]
    first = derive_prices(entry, direction, sl, be_points=be, targets=targets)
    second = derive_prices(entry, direction, sl, be_points=be, targets=targets)
    assert first == second
    assert targets[0].price is None


def test_sell_dax_prices():
    derived = derive_prices(
        Decimal("16500"),
        Direction.SELL,
        Decimal("30"),
        targets=[Target(points=Decimal("60"), size=Decimal("1"))],
    )
    assert derived.sl_price == Decimal("16530")
    assert derived.be_price is None
    assert derived.targets[0].price == Decimal("16440")


def test_buy_break_even_is_above_entry():
    assert break_even_price(Decimal("18500"), Decimal("10"), Direction.BUY) == Decimal("18510")
    assert break_even_price(Decimal("18500"), Decimal("10"), "SELL") == Decimal("18490")


def test_derive_targets_keeps_order_and_ignores_supplied_price():
    targets = [
        Target(points=Decimal("40"), size=Decimal("1"), price=Decimal("1")),
        Target(points=Decimal("20"), size=Decimal("0.5")),
    ]
    derived = derive_targets(targets, Decimal("100"), Direction.BUY)
    assert [t.points for t in derived] == [Decimal("40"), Decimal("20")]
    assert [t.price for t in derived] == [Decimal("140"), Decimal("120")]
    assert derive_targets(None, Decimal("100"), Direction.BUY) == []
