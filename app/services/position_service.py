"""
Position maintenance: edits with price re-derivation, account transfers,
deletion and audit lookups
"""
import logging
from typing import Any, Dict, List, Optional

from app.core.database import transaction
from app.core.exceptions import InvalidState, NotFound, ValidationFailed
from app.models.enums import POSITION_TRANSFERRED, EntityType, TradeStatus, TriggerType
from app.models.journal import Position
from app.models.payloads import AccountRef, PositionFilters, PositionUpdate, parse_payload
from app.services.base import JournalService
from app.services.price_derivation import derive_prices
from app.services.records import history_records, position_record

logger = logging.getLogger(__name__)

# Fields that feed realized PnL; frozen once a trade has booked exits.
LEDGER_BOUND_FIELDS = frozenset({"size", "entry_price", "direction"})
# The only fields a closed trade's position still accepts.
CLOSED_TRADE_EDITABLE = frozenset({"setup", "notes"})

PLAIN_FIELDS = ("symbol", "setup", "notes", "be_size", "size", "entry_price", "direction", "sl_points", "be_points")


class PositionService(JournalService):
    """Positions regardless of whether they are orders or trades"""

    def get(self, user_id: int, position_id: int) -> Dict[str, Any]:
        return position_record(self._get_owned(user_id, position_id))

    def list(self, user_id: int, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        parsed = parse_payload(PositionFilters, filters)
        query = self._scope_to_user(self.db.query(Position), user_id, parsed)
        if parsed.position_kind:
            query = query.filter(Position.position_kind == parsed.position_kind)
        query = query.order_by(Position.created_at.desc(), Position.id.desc())
        items, meta = self._paginate(query, parsed)
        return {"data": [position_record(p) for p in items], "meta": meta}

    def update(self, user_id: int, position_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a partial edit and re-derive every price from the resulting entry."""
        with transaction(self.db):
            position = self._get_owned(user_id, position_id, for_update=True)
            data = parse_payload(PositionUpdate, payload)
            changed = set(data.model_fields_set)
            self._check_editable(position, changed)

            for field in PLAIN_FIELDS:
                if field in changed:
                    setattr(position, field, getattr(data, field))

            targets = data.targets if "targets" in changed else position.target_list
            derived = derive_prices(
                position.entry_price,
                position.direction,
                position.sl_points,
                be_points=position.be_points,
                targets=targets,
            )
            position.sl_price = derived.sl_price
            position.be_price = derived.be_price
            position.target_list = derived.targets

            trade = position.trade
            if "size" in changed and trade is not None and trade.status is TradeStatus.OPEN:
                trade.remaining_size = position.size

        logger.info(f"Position {position_id} updated: {', '.join(sorted(changed)) or 'no changes'}")
        return position_record(position)

    def transfer(self, user_id: int, position_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Move the position to another account of the same user."""
        with transaction(self.db):
            position = self._get_owned(user_id, position_id, for_update=True)
            ref = parse_payload(AccountRef, payload)
            target = self._owned_account(user_id, ref.account_id)
            if target.id == position.account_id:
                raise ValidationFailed("account_id", f"Position {position_id} is already on account {target.id}")

            source_account_id = position.account_id
            position.account = target
            self.status_history.record(
                EntityType.POSITION,
                position.id,
                None,
                POSITION_TRANSFERRED,
                user_id,
                TriggerType.MANUAL,
                details={"from_account_id": source_account_id, "to_account_id": target.id},
            )

        logger.info(f"Position {position_id} transferred from account {source_account_id} to {target.id}")
        return position_record(position)

    def delete(self, user_id: int, position_id: int) -> None:
        with transaction(self.db):
            position = self._get_owned(user_id, position_id)
            self.db.delete(position)
        logger.info(f"Position {position_id} deleted")

    def history(self, user_id: int, position_id: int) -> List[Dict[str, Any]]:
        position = self._get_owned(user_id, position_id)
        return history_records(self.status_history.for_entity(EntityType.POSITION, position.id))

    def _get_owned(self, user_id: int, position_id: int, for_update: bool = False) -> Position:
        self._validate_id(position_id)
        query = self.db.query(Position).filter(Position.id == position_id)
        if for_update:
            query = query.with_for_update()
        position = query.first()
        if position is None:
            raise NotFound(f"Position {position_id} not found")
        self._ensure_owner(position, user_id, f"Position {position_id}")
        return position

    @staticmethod
    def _check_editable(position: Position, changed: set):
        trade = position.trade
        if trade is None:
            return
        if trade.status is TradeStatus.CLOSED and changed - CLOSED_TRADE_EDITABLE:
            raise InvalidState(
                f"Trade {trade.id} is closed; only {', '.join(sorted(CLOSED_TRADE_EDITABLE))} can change"
            )
        frozen = changed & LEDGER_BOUND_FIELDS
        if frozen and trade.partial_exits:
            raise InvalidState(
                f"Trade {trade.id} has booked exits; {', '.join(sorted(frozen))} can no longer change"
            )
