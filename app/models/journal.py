"""
Position, order, trade and partial exit models
"""
from typing import List, Optional

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, JSON, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base
from app.models.enums import Direction, ExitType, OrderStatus, PositionKind, TradeStatus
from app.models.payloads import Target

PRICE = Numeric(20, 8)
SIZE = Numeric(20, 8)
MONEY = Numeric(20, 2)
RATIO = Numeric(14, 4)


def _enum(enum_cls):
    return SAEnum(enum_cls, native_enum=False, length=20)


class Position(Base):
    """Trade idea shared by an order and the trade it turns into"""
    __tablename__ = "positions"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    symbol = Column(String(50), nullable=False, index=True)
    direction = Column(_enum(Direction), nullable=False)
    entry_price = Column(PRICE, nullable=False)
    size = Column(SIZE, nullable=False)
    setup = Column(String(255), nullable=False)
    sl_points = Column(PRICE, nullable=False)
    sl_price = Column(PRICE, nullable=False)
    be_points = Column(PRICE, nullable=True)
    be_price = Column(PRICE, nullable=True)
    be_size = Column(SIZE, nullable=True)
    targets = Column(JSON, nullable=True)  # [{"points", "size", "price"}], see target_list
    notes = Column(Text, nullable=True)
    position_kind = Column(_enum(PositionKind), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    account = relationship("Account", back_populates="positions")
    order = relationship("Order", back_populates="position", uselist=False, cascade="all, delete-orphan")
    trade = relationship(
        "Trade",
        back_populates="position",
        uselist=False,
        cascade="all, delete-orphan",
        foreign_keys="Trade.position_id",
    )

    @property
    def owner_id(self) -> int:
        return self.account.user_id

    @property
    def target_list(self) -> List[Target]:
        return [Target.model_validate(item) for item in (self.targets or [])]

    @target_list.setter
    def target_list(self, targets: Optional[List[Target]]):
        # Decimals are kept as strings so the JSON column round-trips exactly.
        self.targets = [t.model_dump(mode="json") for t in targets] if targets else None


class Order(Base):
    """Position waiting to be triggered"""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    position_id = Column(Integer, ForeignKey("positions.id", ondelete="CASCADE"), nullable=False, unique=True)
    status = Column(_enum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    position = relationship("Position", back_populates="order")


class Trade(Base):
    """Triggered position being managed to exit"""
    __tablename__ = "trades"

    id = Column(Integer, primary_key=True, index=True)
    position_id = Column(Integer, ForeignKey("positions.id", ondelete="CASCADE"), nullable=False, unique=True)
    source_order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    status = Column(_enum(TradeStatus), nullable=False, default=TradeStatus.OPEN)
    remaining_size = Column(SIZE, nullable=False)
    risk_sl_points = Column(PRICE, nullable=True)  # stop distance when the trade opened
    avg_exit_price = Column(PRICE, nullable=True)
    pnl = Column(MONEY, nullable=True)
    pnl_percent = Column(RATIO, nullable=True)
    risk_reward = Column(RATIO, nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    exit_type = Column(_enum(ExitType), nullable=True)
    opened_at = Column(DateTime(timezone=True), nullable=False)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    position = relationship("Position", back_populates="trade", foreign_keys=[position_id])
    source_order = relationship("Order", foreign_keys=[source_order_id])
    partial_exits = relationship(
        "PartialExit",
        back_populates="trade",
        cascade="all, delete-orphan",
        order_by=lambda: (PartialExit.exited_at, PartialExit.id),
    )


class PartialExit(Base):
    """Immutable exit event in a trade's ledger"""
    __tablename__ = "partial_exits"

    id = Column(Integer, primary_key=True, index=True)
    trade_id = Column(Integer, ForeignKey("trades.id", ondelete="CASCADE"), nullable=False, index=True)
    exited_at = Column(DateTime(timezone=True), nullable=False)
    exit_price = Column(PRICE, nullable=False)
    size = Column(SIZE, nullable=False)
    exit_type = Column(_enum(ExitType), nullable=False)
    pnl = Column(MONEY, nullable=False)

    # Relationships
    trade = relationship("Trade", back_populates="partial_exits")
