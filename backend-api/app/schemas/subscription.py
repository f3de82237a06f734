"""
구독 관련 Pydantic 스키마
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
import uuid


class SubscriptionPurchaseRequest(BaseModel):
    """구독 구매/갱신 요청 (결제는 외부에서 완료된 것으로 간주)"""

    product_id: uuid.UUID
    variant_id: uuid.UUID
    payment_id: Optional[str] = Field(None, max_length=200)


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    product_id: uuid.UUID
    duration: str
    duration_value: int
    duration_unit: str
    price: int
    status: str
    payment_status: str
    start_date: datetime
    end_date: datetime
    original_start_date: Optional[datetime] = None
    contiguous_chain_id: Optional[str] = None
    historical_article_limit: int
    is_latest: bool
    is_renewal: bool
    renewal_type: Optional[str] = None
    replaced_subscription_id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None


class RenewalEligibilityResponse(BaseModel):
    subscription_id: uuid.UUID
    can_renew: bool
    renewal_type: str
    message: str
    grace_period_days: Optional[int] = None
