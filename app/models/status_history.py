"""
Append-only audit trail of state transitions
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Index, Enum as SAEnum
from sqlalchemy.sql import func
from app.core.database import Base
from app.models.enums import EntityType, TriggerType

class StatusHistory(Base):
    """One recorded transition; never updated or deleted"""
    __tablename__ = "status_history"
    __table_args__ = (Index("ix_status_history_entity", "entity_type", "entity_id"),)

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(SAEnum(EntityType, native_enum=False, length=20), nullable=False)
    entity_id = Column(Integer, nullable=False)
    previous_status = Column(String(20), nullable=True)
    new_status = Column(String(20), nullable=False)
    user_id = Column(Integer, nullable=False, index=True)
    trigger_type = Column(SAEnum(TriggerType, native_enum=False, length=20), nullable=False, default=TriggerType.MANUAL)
    details = Column(JSON, nullable=True)
    changed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
