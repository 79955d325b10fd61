"""
Plain-dict records returned by the journal services.

Orders and trades are flattened together with their position fields, which is
the shape the API layer and any presentation formatter consume.
"""
from typing import Any, Dict, List, Optional

from app.models.journal import Order, PartialExit, Position, Trade
from app.models.status_history import StatusHistory


def _value(enum_member) -> Optional[str]:
    return enum_member.value if enum_member is not None else None


def position_fields(position: Position) -> Dict[str, Any]:
    return {
        "position_id": position.id,
        "account_id": position.account_id,
        "user_id": position.owner_id,
        "symbol": position.symbol,
        "direction": _value(position.direction),
        "entry_price": position.entry_price,
        "size": position.size,
        "setup": position.setup,
        "sl_points": position.sl_points,
        "sl_price": position.sl_price,
        "be_points": position.be_points,
        "be_price": position.be_price,
        "be_size": position.be_size,
        "targets": [t.model_dump() for t in position.target_list],
        "notes": position.notes,
        "position_kind": _value(position.position_kind),
    }


def order_record(order: Order) -> Dict[str, Any]:
    record = position_fields(order.position)
    record.update({
        "id": order.id,
        "status": _value(order.status),
        "expires_at": order.expires_at,
        "created_at": order.created_at,
    })
    return record


def partial_exit_record(partial_exit: PartialExit) -> Dict[str, Any]:
    return {
        "id": partial_exit.id,
        "trade_id": partial_exit.trade_id,
        "exited_at": partial_exit.exited_at,
        "exit_price": partial_exit.exit_price,
        "size": partial_exit.size,
        "exit_type": _value(partial_exit.exit_type),
        "pnl": partial_exit.pnl,
    }


def trade_record(trade: Trade, include_exits: bool = False) -> Dict[str, Any]:
    record = position_fields(trade.position)
    record.update({
        "id": trade.id,
        "source_order_id": trade.source_order_id,
        "status": _value(trade.status),
        "remaining_size": trade.remaining_size,
        "avg_exit_price": trade.avg_exit_price,
        "pnl": trade.pnl,
        "pnl_percent": trade.pnl_percent,
        "risk_reward": trade.risk_reward,
        "duration_minutes": trade.duration_minutes,
        "exit_type": _value(trade.exit_type),
        "opened_at": trade.opened_at,
        "closed_at": trade.closed_at,
    })
    if include_exits:
        record["partial_exits"] = [partial_exit_record(e) for e in trade.partial_exits]
    return record


def position_record(position: Position) -> Dict[str, Any]:
    record = position_fields(position)
    record.update({
        "id": position.id,
        "created_at": position.created_at,
        "updated_at": position.updated_at,
        "order_id": position.order.id if position.order is not None else None,
        "order_status": _value(position.order.status) if position.order is not None else None,
        "trade_id": position.trade.id if position.trade is not None else None,
        "trade_status": _value(position.trade.status) if position.trade is not None else None,
    })
    return record


def history_record(entry: StatusHistory) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "entity_type": _value(entry.entity_type),
        "entity_id": entry.entity_id,
        "previous_status": entry.previous_status,
        "new_status": entry.new_status,
        "user_id": entry.user_id,
        "trigger_type": _value(entry.trigger_type),
        "details": entry.details,
        "changed_at": entry.changed_at,
    }


def history_records(entries: List[StatusHistory]) -> List[Dict[str, Any]]:
    return [history_record(e) for e in entries]
