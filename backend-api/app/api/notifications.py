"""
알림 API (사용자)

- 목록 조회 시 내 구독 상태를 먼저 점검한다 (요청 시 점검 경로)
- 읽음/숨김은 사용자 단위 (브로드캐스트 원본은 건드리지 않음)
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import uuid
import logging

from app.core.clock import Clock, get_clock
from app.core.database import get_db
from app.core.security import get_current_user
from app.dependencies import get_notifier
from app.models.user import User
from app.schemas.notification import CountResponse, NotificationListResponse, NotificationResponse
from app.services import notification_service
from app.services.subscription_notifier import SubscriptionNotifier

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(item: dict) -> NotificationResponse:
    n = item["notification"]
    return NotificationResponse(
        id=n.id,
        title=n.title,
        message=n.message,
        notification_type=n.notification_type,
        is_broadcast=bool(n.is_broadcast),
        target_audience=n.target_audience if n.is_broadcast else None,
        target_product_id=n.target_product_id,
        subscription_id=n.subscription_id,
        is_read=item["is_read"],
        extra=n.extra or {},
        created_at=n.created_at,
    )


@router.get("/", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    types: Optional[List[str]] = Query(None, description="notification_type 필터"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: SubscriptionNotifier = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
):
    """내 알림 목록"""
    # 점검 실패는 목록 조회를 막지 않는다 (결과에 에러가 쌓일 뿐)
    result = await notifier.check_user_subscriptions(current_user.id, triggered_by="manual_check")
    if result.errors:
        logger.warning(f"[notifications] on-demand check errors for {current_user.id}: {result.errors}")

    try:
        data = await notification_service.list_user_notifications(
            db, current_user, page=page, limit=limit, unread_only=unread_only, types=types, clock=clock
        )
    except Exception as e:
        logger.exception(f"[notifications] list failed: {e}")
        raise HTTPException(status_code=500, detail="알림 목록 조회에 실패했습니다.")

    return NotificationListResponse(
        notifications=[_to_response(item) for item in data["notifications"]],
        total=data["total"],
        unread_count=data["unread_count"],
        page=data["page"],
        limit=data["limit"],
        has_more=data["has_more"],
    )


@router.post("/read-all", response_model=CountResponse)
async def read_all_notifications(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    count = await notification_service.mark_all_as_read(db, current_user, clock)
    return CountResponse(count=count)


@router.patch("/{notification_id}/read")
async def read_notification(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    if not await notification_service.mark_as_read(db, current_user, notification_id, clock):
        raise HTTPException(status_code=404, detail="알림을 찾을 수 없습니다.")
    return {"success": True}


@router.delete("/{notification_id}")
async def hide_notification(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """내 목록에서 알림 삭제(숨김)"""
    if not await notification_service.hide_for_user(db, current_user, notification_id, clock):
        raise HTTPException(status_code=404, detail="알림을 찾을 수 없습니다.")
    return {"success": True}


@router.delete("/", response_model=CountResponse)
async def hide_all_notifications(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    count = await notification_service.hide_all_for_user(db, current_user, clock)
    return CountResponse(count=count)
