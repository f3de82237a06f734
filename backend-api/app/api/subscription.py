"""
구독 API: 내 구독 / 구매 / 갱신 / 갱신 가능 여부
"""

from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
import uuid
import logging

from app.core.clock import Clock, get_clock
from app.core.security import get_current_user
from app.dependencies import get_subscription_service
from app.models.user import User
from app.schemas.subscription import (
    RenewalEligibilityResponse,
    SubscriptionPurchaseRequest,
    SubscriptionResponse,
)
from app.services.entitlement_service import InvalidSubscriptionPeriod, UnsupportedDurationUnit, renewal_eligibility
from app.services.subscription_service import SubscriptionError, SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[SubscriptionResponse])
async def list_my_subscriptions(
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """내 구독 이력 (결제 완료분, 시작일순)"""
    return await service.store.load_subscriptions(user_id=current_user.id)


async def _create(service: SubscriptionService, user: User, body: SubscriptionPurchaseRequest, renew: bool):
    action = service.renew if renew else service.purchase
    try:
        return await action(user.id, body.product_id, body.variant_id, payment_id=body.payment_id)
    except SubscriptionError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except (InvalidSubscriptionPeriod, UnsupportedDurationUnit) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception(f"[subscriptions] {'renew' if renew else 'purchase'} failed: {e}")
        raise HTTPException(status_code=500, detail="구독 처리에 실패했습니다.")


@router.post("/", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def purchase_subscription(
    body: SubscriptionPurchaseRequest,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """구독 구매 (PG 연동 전 stub: 결제 완료로 간주)"""
    return await _create(service, current_user, body, renew=False)


@router.post("/renew", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def renew_subscription(
    body: SubscriptionPurchaseRequest,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """구독 갱신 (만료 전: 이어서 / 유예 기간 내: 지금부터, 체인 유지 / 그 외: 새 체인)"""
    return await _create(service, current_user, body, renew=True)


@router.get("/{subscription_id}/renewal-eligibility", response_model=RenewalEligibilityResponse)
async def get_renewal_eligibility(
    subscription_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
    clock: Clock = Depends(get_clock),
):
    subscription = await service.store.get_subscription(subscription_id)
    if not subscription or subscription.user_id != current_user.id:
        raise HTTPException(status_code=404, detail="구독을 찾을 수 없습니다.")

    result = renewal_eligibility(subscription, clock.now())
    return RenewalEligibilityResponse(
        subscription_id=subscription.id,
        can_renew=result.can_renew,
        renewal_type=result.renewal_type,
        message=result.message,
        grace_period_days=result.grace_period_days,
    )
