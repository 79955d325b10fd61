"""
Trade lifecycle and partial exit accounting.

A trade moves OPEN -> SECURED -> CLOSED (SECURED is skipped when a single
exit flattens it). Every close appends one immutable ``PartialExit``; the
remaining size and the weighted average exit price are recomputed from the
whole ledger, and the closing metrics are computed once when the remaining
size reaches zero.
"""
import logging
from typing import Any, Dict, List, Optional

from app.core.database import transaction
from app.core.exceptions import AlreadyClosed, InvalidState, NotFound, ValidationFailed
from app.core.timeutils import utcnow
from app.models.enums import EntityType, PositionKind, TradeStatus, can_transition_trade
from app.models.journal import PartialExit, Position, Trade
from app.models.payloads import AccountRef, TradeClose, TradeCreate, TradeFilters, parse_payload
from app.services.base import JournalService
from app.services.pnl import exit_pnl, final_metrics, is_flat, remaining_after_exit, weighted_average_exit_price
from app.services.records import history_records, trade_record

logger = logging.getLogger(__name__)


class TradeService(JournalService):
    """Trades, their exits and their transitions"""

    def create(self, user_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Record a trade that is already live (no order behind it)."""
        with transaction(self.db):
            ref = parse_payload(AccountRef, payload)
            account = self._owned_account(user_id, ref.account_id)
            data = parse_payload(TradeCreate, payload)

            position = self._build_position(account, data, PositionKind.TRADE)
            trade = Trade(
                position=position,
                status=TradeStatus.OPEN,
                remaining_size=data.size,
                risk_sl_points=data.sl_points,
                opened_at=data.opened_at,
            )
            self.db.add(position)
            self.db.flush()

            self.status_history.record(EntityType.TRADE, trade.id, None, TradeStatus.OPEN, user_id)

        logger.info(f"Trade {trade.id} opened: {data.direction.value} {data.symbol} @ {data.entry_price}")
        return trade_record(trade)

    def get(self, user_id: int, trade_id: int) -> Dict[str, Any]:
        return trade_record(self._get_owned(user_id, trade_id), include_exits=True)

    def list(self, user_id: int, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        parsed = parse_payload(TradeFilters, filters)
        query = self._scope_to_user(
            self.db.query(Trade).join(Position, Trade.position_id == Position.id), user_id, parsed
        )
        if parsed.status:
            query = query.filter(Trade.status == parsed.status)
        query = query.order_by(Trade.opened_at.desc(), Trade.id.desc())
        items, meta = self._paginate(query, parsed)
        return {"data": [trade_record(t) for t in items], "meta": meta}

    def close(self, user_id: int, trade_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Book one (partial or final) exit against the trade."""
        with transaction(self.db):
            # The row lock (BEGIN IMMEDIATE on SQLite files) serializes concurrent closes of the same trade.
            trade = self._get_owned(user_id, trade_id, for_update=True)
            if trade.status is TradeStatus.CLOSED:
                logger.warning(f"Trade {trade.id} is already closed")
                raise AlreadyClosed(f"Trade {trade.id} is already closed")

            data = parse_payload(TradeClose, payload)
            if data.exit_size > trade.remaining_size:
                raise ValidationFailed(
                    "exit_size",
                    f"exit_size {data.exit_size} exceeds remaining size {trade.remaining_size}",
                )

            position = trade.position
            exited_at = data.exited_at or utcnow()
            partial_exit = PartialExit(
                exited_at=exited_at,
                exit_price=data.exit_price,
                size=data.exit_size,
                exit_type=data.exit_type,
                pnl=exit_pnl(position.entry_price, data.exit_price, data.exit_size, position.direction),
            )
            trade.partial_exits.append(partial_exit)

            exits = trade.partial_exits
            trade.remaining_size = remaining_after_exit(trade.remaining_size, data.exit_size)
            trade.avg_exit_price = weighted_average_exit_price((e.exit_price, e.size) for e in exits)

            previous = trade.status
            if is_flat(trade.remaining_size):
                metrics = final_metrics(
                    (e.pnl for e in exits),
                    entry_price=position.entry_price,
                    size=position.size,
                    sl_points=trade.risk_sl_points if trade.risk_sl_points is not None else position.sl_points,
                    opened_at=trade.opened_at,
                    closed_at=exited_at,
                )
                self._move(trade, TradeStatus.CLOSED)
                trade.exit_type = data.exit_type
                trade.closed_at = exited_at
                trade.pnl = metrics.pnl
                trade.pnl_percent = metrics.pnl_percent
                trade.risk_reward = metrics.risk_reward
                trade.duration_minutes = metrics.duration_minutes
            elif previous is TradeStatus.OPEN:
                self._move(trade, TradeStatus.SECURED)

            self.db.flush()
            if trade.status is not previous:
                self.status_history.record(EntityType.TRADE, trade.id, previous, trade.status, user_id)

        logger.info(
            f"Trade {trade.id} exit {data.exit_type.value} {data.exit_size} @ {data.exit_price} "
            f"pnl={partial_exit.pnl} remaining={trade.remaining_size} status={trade.status.value}"
        )
        return trade_record(trade, include_exits=True)

    def delete(self, user_id: int, trade_id: int) -> None:
        """Delete the trade's position; its exits go with it, its history stays."""
        with transaction(self.db):
            trade = self._get_owned(user_id, trade_id)
            position_id = trade.position_id
            self.db.delete(trade.position)
        logger.info(f"Trade {trade_id} deleted with position {position_id}")

    def history(self, user_id: int, trade_id: int) -> List[Dict[str, Any]]:
        trade = self._get_owned(user_id, trade_id)
        return history_records(self.status_history.for_entity(EntityType.TRADE, trade.id))

    def _get_owned(self, user_id: int, trade_id: int, for_update: bool = False) -> Trade:
        self._validate_id(trade_id)
        query = self.db.query(Trade).filter(Trade.id == trade_id)
        if for_update:
            query = query.with_for_update()
        trade = query.first()
        if trade is None:
            raise NotFound(f"Trade {trade_id} not found")
        self._ensure_owner(trade.position, user_id, f"Trade {trade_id}")
        return trade

    @staticmethod
    def _move(trade: Trade, target: TradeStatus):
        if not can_transition_trade(trade.status, target):
            raise InvalidState(f"Trade {trade.id} cannot move from {trade.status.value} to {target.value}")
        trade.status = target
