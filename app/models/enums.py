"""
Closed value sets for every status and type field in the journal
"""
from enum import Enum
from typing import Dict, FrozenSet


class Direction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def sign(self) -> int:
        """+1 for BUY, -1 for SELL."""
        return 1 if self is Direction.BUY else -1


class PositionKind(str, Enum):
    ORDER = "ORDER"
    TRADE = "TRADE"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    EXECUTED = "EXECUTED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class TradeStatus(str, Enum):
    OPEN = "OPEN"
    SECURED = "SECURED"
    CLOSED = "CLOSED"


class ExitType(str, Enum):
    BE = "BE"
    TP = "TP"
    SL = "SL"
    MANUAL = "MANUAL"


class EntityType(str, Enum):
    ORDER = "ORDER"
    TRADE = "TRADE"
    ACCOUNT = "ACCOUNT"
    POSITION = "POSITION"


class TriggerType(str, Enum):
    MANUAL = "MANUAL"
    SYSTEM = "SYSTEM"
    WEBHOOK = "WEBHOOK"
    BROKER_API = "BROKER_API"


# Non-lifecycle event recorded against a position when it changes account.
POSITION_TRANSFERRED = "TRANSFERRED"

ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.EXECUTED, OrderStatus.CANCELLED, OrderStatus.EXPIRED}),
    OrderStatus.EXECUTED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.EXPIRED: frozenset(),
}

TRADE_TRANSITIONS: Dict[TradeStatus, FrozenSet[TradeStatus]] = {
    TradeStatus.OPEN: frozenset({TradeStatus.SECURED, TradeStatus.CLOSED}),
    TradeStatus.SECURED: frozenset({TradeStatus.CLOSED}),
    TradeStatus.CLOSED: frozenset(),
}


def can_transition_order(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS[current]


def can_transition_trade(current: TradeStatus, target: TradeStatus) -> bool:
    return target in TRADE_TRANSITIONS[current]
