"""
Order lifecycle: PENDING orders are executed into trades, cancelled by the
user, or expired by an external scheduler
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.database import transaction
from app.core.exceptions import InvalidState, NotFound
from app.core.timeutils import as_utc, utcnow
from app.models.enums import (
    EntityType,
    OrderStatus,
    PositionKind,
    TradeStatus,
    TriggerType,
    can_transition_order,
)
from app.models.journal import Order, Position, Trade
from app.models.payloads import AccountRef, OrderCreate, OrderFilters, parse_payload
from app.services.base import JournalService
from app.services.records import history_records, order_record, trade_record

logger = logging.getLogger(__name__)


class OrderService(JournalService):
    """Orders and their transitions"""

    def create(self, user_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a PENDING order on an account the user owns."""
        with transaction(self.db):
            ref = parse_payload(AccountRef, payload)
            account = self._owned_account(user_id, ref.account_id)
            data = parse_payload(OrderCreate, payload)

            position = self._build_position(account, data, PositionKind.ORDER)
            order = Order(position=position, status=OrderStatus.PENDING, expires_at=data.expires_at)
            self.db.add(position)
            self.db.flush()

            self.status_history.record(EntityType.ORDER, order.id, None, OrderStatus.PENDING, user_id)

        logger.info(f"Order {order.id} created: {data.direction.value} {data.symbol} @ {data.entry_price}")
        return order_record(order)

    def get(self, user_id: int, order_id: int) -> Dict[str, Any]:
        return order_record(self._get_owned(user_id, order_id))

    def list(self, user_id: int, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        parsed = parse_payload(OrderFilters, filters)
        query = self._scope_to_user(
            self.db.query(Order).join(Position, Order.position_id == Position.id), user_id, parsed
        )
        if parsed.status:
            query = query.filter(Order.status == parsed.status)
        query = query.order_by(Order.created_at.desc(), Order.id.desc())
        items, meta = self._paginate(query, parsed)
        return {"data": [order_record(o) for o in items], "meta": meta}

    def cancel(self, user_id: int, order_id: int) -> Dict[str, Any]:
        with transaction(self.db):
            order = self._get_owned(user_id, order_id, for_update=True)
            self._transition(order, OrderStatus.CANCELLED, user_id, TriggerType.MANUAL)
        logger.info(f"Order {order.id} cancelled")
        return order_record(order)

    def execute(self, user_id: int, order_id: int) -> Dict[str, Any]:
        """Trigger the order: the position becomes a trade that opens now."""
        with transaction(self.db):
            order = self._get_owned(user_id, order_id, for_update=True)
            self._check_transition(order, OrderStatus.EXECUTED)

            position = order.position
            if position.position_kind is not PositionKind.ORDER or position.trade is not None:
                raise InvalidState(f"Position {position.id} has already been triggered")

            position.position_kind = PositionKind.TRADE
            trade = Trade(
                position=position,
                source_order=order,
                status=TradeStatus.OPEN,
                remaining_size=position.size,
                risk_sl_points=position.sl_points,
                opened_at=utcnow(),
            )
            self.db.add(trade)
            self._transition(order, OrderStatus.EXECUTED, user_id, TriggerType.MANUAL)
            self.db.flush()

            self.status_history.record(EntityType.TRADE, trade.id, None, TradeStatus.OPEN, user_id)

        logger.info(f"Order {order.id} executed into trade {trade.id}")
        record = order_record(order)
        record["trade"] = trade_record(trade)
        return record

    def expire(self, order_id: int, trigger_type: TriggerType = TriggerType.SYSTEM) -> Dict[str, Any]:
        """Expire one order on behalf of a scheduler or integration; PENDING only."""
        with transaction(self.db):
            order = self._get(order_id, for_update=True)
            self._transition(order, OrderStatus.EXPIRED, order.position.owner_id, trigger_type)
        logger.info(f"Order {order.id} expired ({trigger_type.value})")
        return order_record(order)

    def expire_due(self, now: Optional[datetime] = None) -> List[int]:
        """Expire every PENDING order whose expiry has passed; returns their ids."""
        now = as_utc(now) if now is not None else utcnow()
        expired: List[int] = []
        with transaction(self.db):
            due = (
                self.db.query(Order)
                .filter(
                    Order.status == OrderStatus.PENDING,
                    Order.expires_at.isnot(None),
                    Order.expires_at <= now,
                )
                .order_by(Order.id.asc())
                .with_for_update()
                .all()
            )
            for order in due:
                self._transition(order, OrderStatus.EXPIRED, order.position.owner_id, TriggerType.SYSTEM)
                expired.append(order.id)
        if expired:
            logger.info(f"Expired {len(expired)} due orders")
        return expired

    def delete(self, user_id: int, order_id: int) -> None:
        """Hard delete of the order together with its position; not audited."""
        with transaction(self.db):
            order = self._get_owned(user_id, order_id)
            position_id = order.position_id
            self.db.delete(order.position)
        logger.info(f"Order {order_id} deleted with position {position_id}")

    def history(self, user_id: int, order_id: int) -> List[Dict[str, Any]]:
        order = self._get_owned(user_id, order_id)
        return history_records(self.status_history.for_entity(EntityType.ORDER, order.id))

    def _get(self, order_id: int, for_update: bool = False) -> Order:
        self._validate_id(order_id)
        query = self.db.query(Order).filter(Order.id == order_id)
        if for_update:
            query = query.with_for_update()
        order = query.first()
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order

    def _get_owned(self, user_id: int, order_id: int, for_update: bool = False) -> Order:
        order = self._get(order_id, for_update=for_update)
        self._ensure_owner(order.position, user_id, f"Order {order_id}")
        return order

    @staticmethod
    def _check_transition(order: Order, target: OrderStatus):
        if not can_transition_order(order.status, target):
            logger.warning(f"Order {order.id} is {order.status.value}; refusing {target.value}")
            raise InvalidState(f"Order {order.id} is {order.status.value}, only PENDING orders can change")

    def _transition(self, order: Order, target: OrderStatus, user_id: int, trigger_type: TriggerType):
        self._check_transition(order, target)
        previous = order.status
        order.status = target
        self.status_history.record(EntityType.ORDER, order.id, previous, target, user_id, trigger_type)
