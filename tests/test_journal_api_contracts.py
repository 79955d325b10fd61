import inspect
from decimal import Decimal

import pytest
from fastapi import HTTPException

from app.api import routes
from app.core.exceptions import AlreadyClosed, Forbidden, InvalidState, NotFound, ValidationFailed


def test_error_mapping():
    cases = [
        (ValidationFailed("exit_size", "too big"), 422, "journal.validation_failed"),
        (NotFound("Trade 9 not found"), 404, "journal.not_found"),
        (Forbidden("Trade 9 belongs to another user"), 403, "journal.forbidden"),
        (InvalidState("Order 1 is CANCELLED"), 409, "journal.invalid_state"),
        (AlreadyClosed("Trade 1 is already closed"), 409, "journal.already_closed"),
    ]
    for error, status_code, error_code in cases:
        exc = routes.to_http_exception(error)
        assert exc.status_code == status_code
        assert exc.detail["error_code"] == error_code
        assert exc.detail["message"] == error.message


def test_order_round_trip_through_routes(db, position_payload):
    created = routes.create_order(payload=position_payload(), user_id=1, db=db)
    assert created["status"] == "PENDING"
    assert Decimal(created["sl_price"]) == Decimal("18450")

    executed = routes.execute_order(created["id"], user_id=1, db=db)
    assert executed["trade"]["status"] == "OPEN"

    history = routes.get_order_history(created["id"], user_id=1, db=db)
    assert history["entity_type"] == "ORDER"
    assert [h["new_status"] for h in history["history"]] == ["PENDING", "EXECUTED"]

    page = routes.list_orders(status_filter="executed", user_id=1, db=db)
    assert page["meta"]["total"] == 1


def test_trade_close_contract(db, position_payload):
    trade = routes.create_trade(
        payload=position_payload(opened_at="2026-03-02T14:30:00Z"), user_id=1, db=db
    )
    closed = routes.close_trade(
        trade["id"],
        payload={"exit_price": "18600", "exit_size": "2", "exit_type": "TP", "exited_at": "2026-03-02T15:00:00Z"},
        user_id=1,
        db=db,
    )
    assert closed["status"] == "CLOSED"
    assert Decimal(closed["pnl"]) == Decimal("200.00")
    assert closed["duration_minutes"] == 30

    with pytest.raises(HTTPException) as exc:
        routes.close_trade(trade["id"], payload={}, user_id=1, db=db)
    assert exc.value.status_code == 409
    assert exc.value.detail["error_code"] == "journal.already_closed"


def test_validation_error_reports_field(db, position_payload):
    with pytest.raises(HTTPException) as exc:
        routes.create_order(payload=position_payload(sl_points="abc"), user_id=1, db=db)
    assert exc.value.status_code == 422
    assert exc.value.detail["field"] == "sl_points"


def test_foreign_access_is_403(db, position_payload):
    created = routes.create_order(payload=position_payload(), user_id=1, db=db)

    with pytest.raises(HTTPException) as exc:
        routes.get_position(created["position_id"], user_id=2, db=db)
    assert exc.value.status_code == 403

    with pytest.raises(HTTPException) as missing:
        routes.cancel_order(created["id"] + 10, user_id=1, db=db)
    assert missing.value.status_code == 404


def test_expire_routes(db, position_payload):
    created = routes.create_order(payload=position_payload(), user_id=1, db=db)

    sweep = routes.expire_due_orders(db=db)
    assert sweep == {"expired": [], "count": 0}

    with pytest.raises(HTTPException) as exc:
        routes.expire_order(created["id"], trigger_type="cron", db=db)
    assert exc.value.status_code == 422
    assert exc.value.detail["field"] == "trigger_type"

    expired = routes.expire_order(created["id"], trigger_type="broker_api", db=db)
    assert expired["status"] == "EXPIRED"


def test_database_handlers_run_in_threadpool():
    handlers = [
        route.endpoint for route in routes.api_router.routes
        if "db" in inspect.signature(route.endpoint).parameters
    ]
    assert handlers
    for handler in handlers:
        assert not inspect.iscoroutinefunction(handler), handler.__name__


def test_over_precise_exit_size_is_422(db, position_payload):
    trade = routes.create_trade(payload=position_payload(), user_id=1, db=db)

    with pytest.raises(HTTPException) as exc:
        routes.close_trade(
            trade["id"],
            payload={"exit_price": "18600", "exit_size": "0.123456789", "exit_type": "TP"},
            user_id=1,
            db=db,
        )
    assert exc.value.status_code == 422
    assert exc.value.detail["field"] == "exit_size"

    still_open = routes.get_trade(trade["id"], user_id=1, db=db)
    assert still_open["status"] == "OPEN"
    assert Decimal(still_open["remaining_size"]) == Decimal("2")
