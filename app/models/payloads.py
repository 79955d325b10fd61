"""
Pydantic payloads validated once at the engine boundary.

Services receive raw dicts (JSON bodies, test fixtures) and run them through
``parse_payload``; the first failing top-level key becomes the
``ValidationFailed.field`` reported to the caller.
"""
import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from app.core.exceptions import ValidationFailed
from app.core.timeutils import as_utc, utcnow
from app.models.enums import Direction, ExitType, OrderStatus, PositionKind, TradeStatus

MAX_SYMBOL_LENGTH = 50
MAX_SETUP_LENGTH = 255
MAX_NOTES_LENGTH = 10000
# Matches the scale of the Numeric(20, 8) price and size columns.
DECIMAL_PLACES = 8

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def parse_payload(model: Type[PayloadT], data: Optional[Dict[str, Any]]) -> PayloadT:
    """Validate ``data`` against ``model`` or raise ``ValidationFailed``."""
    if data is not None and not isinstance(data, dict):
        raise ValidationFailed(None, "payload must be an object")
    try:
        return model.model_validate(data or {})
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = first.get("loc") or ()
        field = str(loc[0]) if loc else None
        raise ValidationFailed(field, first.get("msg")) from exc


def _upper(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


def _required_text(value: str, limit: int, name: str) -> str:
    text = value.strip()
    if not text:
        raise ValueError(f"{name} must not be empty")
    if len(text) > limit:
        raise ValueError(f"{name} must be at most {limit} characters")
    return text


class Target(BaseModel):
    """One profit target; ``price`` is derived, never trusted from input."""
    points: Decimal = Field(gt=0, decimal_places=DECIMAL_PLACES)
    size: Decimal = Field(gt=0, decimal_places=DECIMAL_PLACES)
    price: Optional[Decimal] = None


def _decode_targets(value: Any) -> Any:
    # Older clients post the list as a JSON string.
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError("targets must be a JSON list") from exc
    if value == []:
        return None
    return value


class PositionFields(BaseModel):
    """Fields shared by orders and trades"""
    direction: Direction
    symbol: str
    entry_price: Decimal = Field(gt=0, decimal_places=DECIMAL_PLACES)
    size: Decimal = Field(gt=0, decimal_places=DECIMAL_PLACES)
    setup: str
    sl_points: Decimal = Field(gt=0, decimal_places=DECIMAL_PLACES)
    be_points: Optional[Decimal] = Field(default=None, gt=0, decimal_places=DECIMAL_PLACES)
    be_size: Optional[Decimal] = Field(default=None, gt=0, decimal_places=DECIMAL_PLACES)
    targets: Optional[List[Target]] = None
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_direction(cls, value):
        return _upper(value)

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, value: str) -> str:
        return _required_text(value, MAX_SYMBOL_LENGTH, "symbol")

    @field_validator("setup")
    @classmethod
    def validate_setup(cls, value: str) -> str:
        return _required_text(value, MAX_SETUP_LENGTH, "setup")

    @field_validator("targets", mode="before")
    @classmethod
    def decode_targets(cls, value):
        return _decode_targets(value)


class OrderCreate(PositionFields):
    account_id: int = Field(gt=0)
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def validate_expires_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        value = as_utc(value)
        if value <= utcnow():
            raise ValueError("expires_at must be in the future")
        return value


class TradeCreate(PositionFields):
    account_id: int = Field(gt=0)
    opened_at: datetime

    @field_validator("opened_at")
    @classmethod
    def normalize_opened_at(cls, value: datetime) -> datetime:
        return as_utc(value)


class TradeClose(BaseModel):
    exit_price: Decimal = Field(gt=0, decimal_places=DECIMAL_PLACES)
    exit_size: Decimal = Field(gt=0, decimal_places=DECIMAL_PLACES)
    exit_type: ExitType
    exited_at: Optional[datetime] = None

    @field_validator("exit_type", mode="before")
    @classmethod
    def normalize_exit_type(cls, value):
        return _upper(value)

    @field_validator("exited_at")
    @classmethod
    def normalize_exited_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class PositionUpdate(BaseModel):
    """Partial update; only keys present in the payload are applied"""
    direction: Optional[Direction] = None
    symbol: Optional[str] = None
    entry_price: Optional[Decimal] = Field(default=None, gt=0, decimal_places=DECIMAL_PLACES)
    size: Optional[Decimal] = Field(default=None, gt=0, decimal_places=DECIMAL_PLACES)
    setup: Optional[str] = None
    sl_points: Optional[Decimal] = Field(default=None, gt=0, decimal_places=DECIMAL_PLACES)
    be_points: Optional[Decimal] = Field(default=None, gt=0, decimal_places=DECIMAL_PLACES)
    be_size: Optional[Decimal] = Field(default=None, gt=0, decimal_places=DECIMAL_PLACES)
    targets: Optional[List[Target]] = None
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_direction(cls, value):
        return _upper(value)

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("symbol must not be empty")
        return _required_text(value, MAX_SYMBOL_LENGTH, "symbol")

    @field_validator("setup")
    @classmethod
    def validate_setup(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("setup must not be empty")
        return _required_text(value, MAX_SETUP_LENGTH, "setup")

    @field_validator("direction", "entry_price", "size", "sl_points")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("field cannot be cleared")
        return value

    @field_validator("targets", mode="before")
    @classmethod
    def decode_targets(cls, value):
        return _decode_targets(value)


class AccountRef(BaseModel):
    """Just the account a create or transfer targets"""
    account_id: int = Field(gt=0)


class ListFilters(BaseModel):
    account_id: Optional[int] = Field(default=None, gt=0)
    direction: Optional[Direction] = None
    symbol: Optional[str] = Field(default=None, max_length=MAX_SYMBOL_LENGTH)
    page: int = Field(default=1, ge=1)
    per_page: Optional[int] = Field(default=None, ge=1)

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_direction(cls, value):
        return _upper(value) or None


class OrderFilters(ListFilters):
    status: Optional[OrderStatus] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value):
        return _upper(value) or None


class TradeFilters(ListFilters):
    status: Optional[TradeStatus] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value):
        return _upper(value) or None


class PositionFilters(ListFilters):
    position_kind: Optional[PositionKind] = None

    @field_validator("position_kind", mode="before")
    @classmethod
    def normalize_kind(cls, value):
        return _upper(value) or None
