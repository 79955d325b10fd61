"""
Status history emission and lookup
"""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from app.core.timeutils import utcnow
from app.models.enums import EntityType, TriggerType
from app.models.status_history import StatusHistory

logger = logging.getLogger(__name__)

Status = Union[Enum, str]


def _status_value(status: Optional[Status]) -> Optional[str]:
    if status is None:
        return None
    return status.value if isinstance(status, Enum) else str(status)


class StatusHistoryService:
    """Appends audit entries inside the caller's transaction; never commits."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        entity_type: EntityType,
        entity_id: int,
        previous_status: Optional[Status],
        new_status: Status,
        user_id: int,
        trigger_type: TriggerType = TriggerType.MANUAL,
        details: Optional[Dict[str, Any]] = None,
    ) -> StatusHistory:
        entry = StatusHistory(
            entity_type=entity_type,
            entity_id=entity_id,
            previous_status=_status_value(previous_status),
            new_status=_status_value(new_status),
            user_id=user_id,
            trigger_type=trigger_type,
            details=details,
            changed_at=utcnow(),
        )
        self.db.add(entry)
        logger.debug(
            f"History {entity_type.value} #{entity_id}: "
            f"{entry.previous_status} -> {entry.new_status} ({trigger_type.value})"
        )
        return entry

    def for_entity(self, entity_type: EntityType, entity_id: int) -> List[StatusHistory]:
        return (
            self.db.query(StatusHistory)
            .filter(StatusHistory.entity_type == entity_type, StatusHistory.entity_id == entity_id)
            .order_by(StatusHistory.changed_at.asc(), StatusHistory.id.asc())
            .all()
        )
