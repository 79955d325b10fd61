"""
Pydantic schemas for API request/response contracts.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class JournalErrorDetail(BaseModel):
    error_code: str
    message: str
    field: Optional[str] = None


class PageMetaOut(BaseModel):
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=50, ge=1)
    total: int = Field(default=0, ge=0)
    total_pages: int = Field(default=0, ge=0)


class PageOut(BaseModel):
    data: List[Dict[str, Any]] = Field(default_factory=list)
    meta: PageMetaOut = Field(default_factory=PageMetaOut)


class HistoryOut(BaseModel):
    entity_type: str
    entity_id: int
    history: List[Dict[str, Any]] = Field(default_factory=list)


class ExpiredOrdersOut(BaseModel):
    expired: List[int] = Field(default_factory=list)
    count: int = 0


ERROR_RESPONSES = {
    401: {"description": "Missing API key or acting user"},
    403: {"model": JournalErrorDetail, "description": "Entity belongs to another user"},
    404: {"model": JournalErrorDetail, "description": "Entity not found"},
    409: {"model": JournalErrorDetail, "description": "Operation not allowed in the current status"},
    422: {"model": JournalErrorDetail, "description": "Invalid input"},
}
