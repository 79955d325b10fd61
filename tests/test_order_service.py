from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import Forbidden, InvalidState, NotFound, ValidationFailed
from app.core.timeutils import utcnow
from app.models.enums import TriggerType
from app.models.journal import Order, Position, Trade
from app.services.order_service import OrderService


def test_create_order_derives_prices_and_records_history(db, position_payload):
    service = OrderService(db)
    order = service.create(1, position_payload(
        be_points="20",
        targets=[{"points": "100", "size": "1"}, {"points": "150", "size": "1"}],
    ))

    assert order["status"] == "PENDING"
    assert order["position_kind"] == "ORDER"
    assert order["sl_price"] == Decimal("18450")
    assert order["be_price"] == Decimal("18520")
    assert [t["price"] for t in order["targets"]] == [Decimal("18600"), Decimal("18650")]

    history = service.history(1, order["id"])
    assert [(h["previous_status"], h["new_status"]) for h in history] == [(None, "PENDING")]
    assert history[0]["user_id"] == 1
    assert history[0]["trigger_type"] == "MANUAL"


def test_create_order_accepts_targets_as_json_text(db, position_payload):
    order = OrderService(db).create(1, position_payload(targets='[{"points": 40, "size": 2}]'))
    assert order["targets"][0]["price"] == Decimal("18540")

    empty = OrderService(db).create(1, position_payload(targets="[]"))
    assert empty["targets"] == []


@pytest.mark.parametrize("overrides, field", [
    ({"setup": "   "}, "setup"),
    ({"direction": "LONG"}, "direction"),
    ({"entry_price": "0"}, "entry_price"),
    ({"sl_points": "-5"}, "sl_points"),
    ({"symbol": "X" * 51}, "symbol"),
    ({"notes": "n" * 10001}, "notes"),
    ({"targets": [{"points": "10", "size": "0"}]}, "targets"),
    ({"account_id": 0}, "account_id"),
    ({"entry_price": "18500.123456789"}, "entry_price"),
    ({"size": "0.000000001"}, "size"),
    ({"be_points": "10.123456789"}, "be_points"),
    ({"targets": [{"points": "40.000000001", "size": "1"}]}, "targets"),
])
def test_create_order_rejects_invalid_fields(db, position_payload, overrides, field):
    with pytest.raises(ValidationFailed) as exc:
        OrderService(db).create(1, position_payload(**overrides))
    assert exc.value.field == field
    assert db.query(Position).count() == 0


def test_create_order_rejects_past_expiry(db, position_payload):
    with pytest.raises(ValidationFailed) as exc:
        OrderService(db).create(1, position_payload(expires_at=(utcnow() - timedelta(minutes=1)).isoformat()))
    assert exc.value.field == "expires_at"


def test_create_order_checks_account_ownership(db, accounts, position_payload):
    service = OrderService(db)
    with pytest.raises(Forbidden):
        service.create(1, position_payload(account_id=accounts.foreign))
    with pytest.raises(NotFound):
        service.create(1, position_payload(account_id=accounts.archived))
    with pytest.raises(NotFound):
        service.create(1, position_payload(account_id=9999))


def test_cancel_twice_is_rejected(db, position_payload):
    service = OrderService(db)
    order = service.create(1, position_payload())

    cancelled = service.cancel(1, order["id"])
    assert cancelled["status"] == "CANCELLED"

    with pytest.raises(InvalidState):
        service.cancel(1, order["id"])

    history = service.history(1, order["id"])
    assert [h["new_status"] for h in history] == ["PENDING", "CANCELLED"]


def test_execute_creates_exactly_one_trade(db, position_payload):
    service = OrderService(db)
    order = service.create(1, position_payload())

    executed = service.execute(1, order["id"])

    assert executed["status"] == "EXECUTED"
    assert executed["position_kind"] == "TRADE"
    trade = executed["trade"]
    assert trade["status"] == "OPEN"
    assert trade["remaining_size"] == Decimal("2")
    assert trade["source_order_id"] == order["id"]
    assert db.query(Trade).count() == 1

    order_history = service.history(1, order["id"])
    assert [(h["previous_status"], h["new_status"]) for h in order_history] == [
        (None, "PENDING"),
        ("PENDING", "EXECUTED"),
    ]

    with pytest.raises(InvalidState):
        service.execute(1, order["id"])
    assert db.query(Trade).count() == 1


def test_execute_cancelled_order_is_rejected(db, position_payload):
    service = OrderService(db)
    order = service.create(1, position_payload())
    service.cancel(1, order["id"])

    with pytest.raises(InvalidState):
        service.execute(1, order["id"])
    assert db.query(Trade).count() == 0


def test_foreign_order_is_forbidden_not_hidden(db, accounts, position_payload):
    service = OrderService(db)
    order = service.create(1, position_payload())

    with pytest.raises(Forbidden):
        service.get(2, order["id"])
    with pytest.raises(Forbidden):
        service.cancel(2, order["id"])
    with pytest.raises(NotFound):
        service.get(2, order["id"] + 100)
    with pytest.raises(ValidationFailed):
        service.get(1, 0)

    assert service.get(1, order["id"])["status"] == "PENDING"


def test_expire_due_only_touches_due_pending_orders(db, position_payload):
    service = OrderService(db)
    soon = (utcnow() + timedelta(hours=1)).isoformat()
    later = (utcnow() + timedelta(days=3)).isoformat()
    due = service.create(1, position_payload(expires_at=soon))
    cancelled = service.create(1, position_payload(expires_at=soon))
    not_due = service.create(1, position_payload(expires_at=later))
    no_expiry = service.create(1, position_payload())
    service.cancel(1, cancelled["id"])

    expired = service.expire_due(now=utcnow() + timedelta(hours=2))

    assert expired == [due["id"]]
    assert service.get(1, due["id"])["status"] == "EXPIRED"
    assert service.get(1, cancelled["id"])["status"] == "CANCELLED"
    assert service.get(1, not_due["id"])["status"] == "PENDING"
    assert service.get(1, no_expiry["id"])["status"] == "PENDING"

    last = service.history(1, due["id"])[-1]
    assert last["trigger_type"] == "SYSTEM"
    assert last["user_id"] == 1


def test_expire_records_external_trigger(db, position_payload):
    service = OrderService(db)
    order = service.create(1, position_payload())

    service.expire(order["id"], TriggerType.WEBHOOK)

    last = service.history(1, order["id"])[-1]
    assert (last["previous_status"], last["new_status"], last["trigger_type"]) == ("PENDING", "EXPIRED", "WEBHOOK")
    with pytest.raises(InvalidState):
        service.expire(order["id"])


def test_delete_order_removes_position_silently(db, position_payload):
    service = OrderService(db)
    order = service.create(1, position_payload())
    history_before = len(service.history(1, order["id"]))

    service.delete(1, order["id"])

    assert db.query(Order).count() == 0
    assert db.query(Position).count() == 0
    assert history_before == 1
    with pytest.raises(NotFound):
        service.get(1, order["id"])


def test_delete_executed_order_removes_its_trade(db, position_payload):
    service = OrderService(db)
    order = service.create(1, position_payload())
    service.execute(1, order["id"])

    service.delete(1, order["id"])

    assert db.query(Trade).count() == 0
    assert db.query(Position).count() == 0


def test_list_orders_is_scoped_and_paginated(db, accounts, position_payload):
    service = OrderService(db)
    for symbol in ("NASDAQ", "DAX", "DAX"):
        service.create(1, position_payload(symbol=symbol))
    service.create(1, position_payload(account_id=accounts.prop, direction="sell"))
    service.create(2, position_payload(account_id=accounts.foreign))

    page = service.list(1, {"per_page": 3})
    assert page["meta"] == {"page": 1, "per_page": 3, "total": 4, "total_pages": 2}
    assert len(page["data"]) == 3
    assert all(o["user_id"] == 1 for o in page["data"])

    assert service.list(1, {"symbol": "DAX"})["meta"]["total"] == 2
    assert service.list(1, {"direction": "SELL"})["meta"]["total"] == 1
    assert service.list(1, {"account_id": accounts.prop})["meta"]["total"] == 1
    assert service.list(1, {"status": "cancelled"})["meta"]["total"] == 0
    assert service.list(2)["meta"]["total"] == 1

    with pytest.raises(ValidationFailed) as exc:
        service.list(1, {"status": "FILLED"})
    assert exc.value.field == "status"
