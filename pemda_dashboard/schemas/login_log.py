"""Schemas for the login log API."""

from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field

from .common import CamelModel, Pagination


class LoginLogResponse(CamelModel):
    id: int
    user_id: str
    action: str
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None
    event_metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias="event_metadata", serialization_alias="metadata"
    )
    success: bool = True
    error_message: Optional[str] = None
    timestamp: datetime


class LoginLogListResponse(BaseModel):
    logs: List[LoginLogResponse]
    pagination: Pagination


class LoginLogStats(CamelModel):
    total: int = 0
    recent_activity: int = 0
    by_action: Dict[str, int] = {}
