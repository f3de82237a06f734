"""
알림 관련 Pydantic 스키마
"""

from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
import re
import uuid

from app.models.notification import AUDIENCE_ALL, TARGET_AUDIENCES


class NotificationResponse(BaseModel):
    id: uuid.UUID
    title: str
    message: str
    notification_type: str
    is_broadcast: bool
    target_audience: Optional[str] = None
    target_product_id: Optional[uuid.UUID] = None
    subscription_id: Optional[uuid.UUID] = None
    is_read: bool
    extra: Optional[Dict[str, Any]] = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    total: int
    unread_count: int
    page: int
    limit: int
    has_more: bool


class BroadcastCreate(BaseModel):
    """관리자 브로드캐스트 생성 요청"""

    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=1000)
    target_audience: str = AUDIENCE_ALL
    target_product_id: Optional[uuid.UUID] = None
    notification_type: str = Field("general", max_length=50)

    @field_validator("title", "message", mode="before")
    @classmethod
    def strip_tags(cls, v):
        if v is None:
            return v
        return re.sub(r"<[^>]*>", "", str(v)).strip()

    @field_validator("target_audience")
    @classmethod
    def check_audience(cls, v):
        if v not in TARGET_AUDIENCES:
            raise ValueError(f"target_audience는 {', '.join(TARGET_AUDIENCES)} 중 하나여야 합니다.")
        return v


class CountResponse(BaseModel):
    success: bool = True
    count: int
