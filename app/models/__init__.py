"""
Journal models; importing this package registers every table on ``Base.metadata``
"""
from app.models.account import Account
from app.models.journal import Order, PartialExit, Position, Trade
from app.models.status_history import StatusHistory

__all__ = ["Account", "Order", "PartialExit", "Position", "StatusHistory", "Trade"]
