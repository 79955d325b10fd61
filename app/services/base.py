"""
Shared plumbing for the journal services: ownership guard, position
construction and paginated listing
"""
import logging
import math
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Query, Session

from app.core.config import settings
from app.core.exceptions import Forbidden, NotFound, ValidationFailed
from app.models.account import Account
from app.models.enums import PositionKind
from app.models.journal import Position
from app.models.payloads import ListFilters, PositionFields
from app.services.account_directory import AccountDirectory
from app.services.price_derivation import derive_prices
from app.services.status_history import StatusHistoryService

logger = logging.getLogger(__name__)


class JournalService:
    """Base class; every service works on the session it is handed."""

    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountDirectory(db)
        self.status_history = StatusHistoryService(db)

    @staticmethod
    def _validate_id(entity_id: Any, field: str = "id") -> int:
        if isinstance(entity_id, bool) or not isinstance(entity_id, int) or entity_id <= 0:
            raise ValidationFailed(field, f"{field} must be a positive integer")
        return entity_id

    @staticmethod
    def _ensure_owner(position: Position, user_id: int, label: str):
        """Existence has already been checked; a foreign owner is Forbidden, never NotFound."""
        if position.owner_id != user_id:
            logger.warning(f"User {user_id} denied access to {label}")
            raise Forbidden(f"{label} belongs to another user")

    def _owned_account(self, user_id: int, account_id: int) -> Account:
        self._validate_id(account_id, "account_id")
        account = self.accounts.find_account_by_id(account_id)
        if account is None:
            raise NotFound(f"Account {account_id} not found")
        if account.user_id != user_id:
            logger.warning(f"User {user_id} denied access to account {account_id}")
            raise Forbidden(f"Account {account_id} belongs to another user")
        return account

    @staticmethod
    def _build_position(account: Account, fields: PositionFields, kind: PositionKind) -> Position:
        derived = derive_prices(
            fields.entry_price,
            fields.direction,
            fields.sl_points,
            be_points=fields.be_points,
            targets=fields.targets,
        )
        position = Position(
            account=account,
            symbol=fields.symbol,
            direction=fields.direction,
            entry_price=fields.entry_price,
            size=fields.size,
            setup=fields.setup,
            sl_points=fields.sl_points,
            sl_price=derived.sl_price,
            be_points=fields.be_points,
            be_price=derived.be_price,
            be_size=fields.be_size,
            notes=fields.notes,
            position_kind=kind,
        )
        position.target_list = derived.targets
        return position

    @staticmethod
    def _scope_to_user(query: Query, user_id: int, filters: ListFilters) -> Query:
        """Restrict a query already joined to Position to the user's rows."""
        query = query.join(Account, Position.account_id == Account.id).filter(Account.user_id == user_id)
        if filters.account_id:
            query = query.filter(Position.account_id == filters.account_id)
        if filters.direction:
            query = query.filter(Position.direction == filters.direction)
        if filters.symbol:
            query = query.filter(Position.symbol == filters.symbol)
        return query

    @staticmethod
    def _paginate(query: Query, filters: ListFilters) -> Tuple[List[Any], Dict[str, int]]:
        per_page = min(settings.MAX_PAGE_SIZE, filters.per_page or settings.DEFAULT_PAGE_SIZE)
        total = query.count()
        items = query.offset((filters.page - 1) * per_page).limit(per_page).all()
        meta = {
            "page": filters.page,
            "per_page": per_page,
            "total": total,
            "total_pages": math.ceil(total / per_page) if total else 0,
        }
        return items, meta
