"""
API routes for the trading journal
"""
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.api.schemas import ERROR_RESPONSES, ExpiredOrdersOut, HistoryOut, PageOut
from app.api.security import get_acting_user, require_api_key
from app.core.database import get_db
from app.core.exceptions import Forbidden, InvalidState, JournalError, NotFound, ValidationFailed
from app.models.enums import EntityType, TriggerType
from app.services.order_service import OrderService
from app.services.position_service import PositionService
from app.services.trade_service import TradeService

logger = logging.getLogger(__name__)

# Create router
api_router = APIRouter(dependencies=[Depends(require_api_key)], responses=ERROR_RESPONSES)

STATUS_BY_ERROR = (
    (ValidationFailed, 422),
    (NotFound, 404),
    (Forbidden, 403),
    (InvalidState, 409),
)


def to_http_exception(exc: JournalError) -> HTTPException:
    """Translate an engine error into the HTTP error contract."""
    status_code = status.HTTP_400_BAD_REQUEST
    for error_cls, code in STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            status_code = code
            break
    return HTTPException(status_code=status_code, detail=exc.to_detail())


def _respond(data: Any) -> Any:
    # Decimals go out as strings so prices and PnL survive JSON exactly.
    return jsonable_encoder(data, custom_encoder={Decimal: str})


def _filters(**kwargs) -> Dict[str, Any]:
    return {key: value for key, value in kwargs.items() if value is not None}


# Order Routes
@api_router.post("/orders", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: Dict[str, Any] = Body(...),
    user_id: int = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    """Create a pending order"""
    try:
        return _respond(OrderService(db).create(user_id, payload))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error creating order: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.get("/orders", response_model=PageOut)
def list_orders(
    account_id: Optional[int] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    direction: Optional[str] = None,
    symbol: Optional[str] = None,
    page: int = 1,
    per_page: Optional[int] = None,
    user_id: int = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    """List the user's orders"""
    try:
        filters = _filters(
            account_id=account_id, status=status_filter, direction=direction,
            symbol=symbol, page=page, per_page=per_page,
        )
        return _respond(OrderService(db).list(user_id, filters))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error listing orders: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.get("/orders/{order_id}")
def get_order(order_id: int, user_id: int = Depends(get_acting_user), db: Session = Depends(get_db)):
    """Get one order"""
    try:
        return _respond(OrderService(db).get(user_id, order_id))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error getting order {order_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.post("/orders/{order_id}/cancel")
def cancel_order(order_id: int, user_id: int = Depends(get_acting_user), db: Session = Depends(get_db)):
    """Cancel a pending order"""
    try:
        return _respond(OrderService(db).cancel(user_id, order_id))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error cancelling order {order_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.post("/orders/{order_id}/execute")
def execute_order(order_id: int, user_id: int = Depends(get_acting_user), db: Session = Depends(get_db)):
    """Trigger a pending order into a trade"""
    try:
        return _respond(OrderService(db).execute(user_id, order_id))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error executing order {order_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.delete("/orders/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(order_id: int, user_id: int = Depends(get_acting_user), db: Session = Depends(get_db)):
    """Delete an order with its position"""
    try:
        OrderService(db).delete(user_id, order_id)
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error deleting order {order_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.get("/orders/{order_id}/history", response_model=HistoryOut)
def get_order_history(order_id: int, user_id: int = Depends(get_acting_user), db: Session = Depends(get_db)):
    """Status history of an order"""
    try:
        history = OrderService(db).history(user_id, order_id)
        return _respond({"entity_type": EntityType.ORDER.value, "entity_id": order_id, "history": history})
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error getting history for order {order_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

# Trade Routes
@api_router.post("/trades", status_code=status.HTTP_201_CREATED)
def create_trade(
    payload: Dict[str, Any] = Body(...),
    user_id: int = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    """Record an open trade"""
    try:
        return _respond(TradeService(db).create(user_id, payload))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error creating trade: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.get("/trades", response_model=PageOut)
def list_trades(
    account_id: Optional[int] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    direction: Optional[str] = None,
    symbol: Optional[str] = None,
    page: int = 1,
    per_page: Optional[int] = None,
    user_id: int = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    """List the user's trades"""
    try:
        filters = _filters(
            account_id=account_id, status=status_filter, direction=direction,
            symbol=symbol, page=page, per_page=per_page,
        )
        return _respond(TradeService(db).list(user_id, filters))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error listing trades: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.get("/trades/{trade_id}")
def get_trade(trade_id: int, user_id: int = Depends(get_acting_user), db: Session = Depends(get_db)):
    """Get one trade with its exits"""
    try:
        return _respond(TradeService(db).get(user_id, trade_id))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error getting trade {trade_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.post("/trades/{trade_id}/close")
def close_trade(
    trade_id: int,
    payload: Dict[str, Any] = Body(...),
    user_id: int = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    """Book a partial or final exit"""
    try:
        return _respond(TradeService(db).close(user_id, trade_id, payload))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error closing trade {trade_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.delete("/trades/{trade_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_trade(trade_id: int, user_id: int = Depends(get_acting_user), db: Session = Depends(get_db)):
    """Delete a trade with its position and exits"""
    try:
        TradeService(db).delete(user_id, trade_id)
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error deleting trade {trade_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.get("/trades/{trade_id}/history", response_model=HistoryOut)
def get_trade_history(trade_id: int, user_id: int = Depends(get_acting_user), db: Session = Depends(get_db)):
    """Status history of a trade"""
    try:
        history = TradeService(db).history(user_id, trade_id)
        return _respond({"entity_type": EntityType.TRADE.value, "entity_id": trade_id, "history": history})
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error getting history for trade {trade_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

# Position Routes
@api_router.get("/positions", response_model=PageOut)
def list_positions(
    account_id: Optional[int] = None,
    position_kind: Optional[str] = None,
    direction: Optional[str] = None,
    symbol: Optional[str] = None,
    page: int = 1,
    per_page: Optional[int] = None,
    user_id: int = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    """List the user's positions"""
    try:
        filters = _filters(
            account_id=account_id, position_kind=position_kind, direction=direction,
            symbol=symbol, page=page, per_page=per_page,
        )
        return _respond(PositionService(db).list(user_id, filters))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error listing positions: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.get("/positions/{position_id}")
def get_position(position_id: int, user_id: int = Depends(get_acting_user), db: Session = Depends(get_db)):
    """Get one position"""
    try:
        return _respond(PositionService(db).get(user_id, position_id))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error getting position {position_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.patch("/positions/{position_id}")
def update_position(
    position_id: int,
    payload: Dict[str, Any] = Body(...),
    user_id: int = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    """Edit a position; derived prices are recomputed"""
    try:
        return _respond(PositionService(db).update(user_id, position_id, payload))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error updating position {position_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.post("/positions/{position_id}/transfer")
def transfer_position(
    position_id: int,
    payload: Dict[str, Any] = Body(...),
    user_id: int = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    """Move a position to another of the user's accounts"""
    try:
        return _respond(PositionService(db).transfer(user_id, position_id, payload))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error transferring position {position_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.delete("/positions/{position_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_position(position_id: int, user_id: int = Depends(get_acting_user), db: Session = Depends(get_db)):
    """Delete a position with its order or trade"""
    try:
        PositionService(db).delete(user_id, position_id)
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error deleting position {position_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.get("/positions/{position_id}/history", response_model=HistoryOut)
def get_position_history(
    position_id: int, user_id: int = Depends(get_acting_user), db: Session = Depends(get_db)
):
    """Transfer history of a position"""
    try:
        history = PositionService(db).history(user_id, position_id)
        return _respond({"entity_type": EntityType.POSITION.value, "entity_id": position_id, "history": history})
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error getting history for position {position_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

# System Routes
@api_router.post("/system/orders/expire-due", response_model=ExpiredOrdersOut)
def expire_due_orders(db: Session = Depends(get_db)):
    """Expire every pending order past its expiry (scheduler hook)"""
    try:
        expired = OrderService(db).expire_due()
        return {"expired": expired, "count": len(expired)}
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error expiring due orders: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@api_router.post("/system/orders/{order_id}/expire")
def expire_order(order_id: int, trigger_type: str = TriggerType.SYSTEM.value, db: Session = Depends(get_db)):
    """Expire one pending order on behalf of a scheduler or integration"""
    try:
        try:
            trigger = TriggerType(str(trigger_type).strip().upper())
        except ValueError:
            raise ValidationFailed("trigger_type", f"unknown trigger_type {trigger_type}")
        return _respond(OrderService(db).expire(order_id, trigger))
    except JournalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error expiring order {order_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
