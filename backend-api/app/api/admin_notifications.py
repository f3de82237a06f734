"""
관리자 알림 API

- 브로드캐스트 생성 (target_audience / target_product_id)
- 구독 상태 점검 수동 실행, 상태별 집계
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.clock import Clock, get_clock
from app.core.database import get_db
from app.core.realtime import NotificationSink
from app.core.security import get_current_admin
from app.dependencies import get_notifier, provide_sink
from app.models.user import User
from app.schemas.notification import BroadcastCreate, NotificationResponse
from app.services import notification_service
from app.services.notification_service import InvalidBroadcast
from app.services.subscription_notifier import SubscriptionNotifier

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/broadcast", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def create_broadcast(
    payload: BroadcastCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin),
    sink: NotificationSink = Depends(provide_sink),
    clock: Clock = Depends(get_clock),
):
    """브로드캐스트 생성(관리자)"""
    try:
        n = await notification_service.create_broadcast(
            db,
            title=payload.title,
            message=payload.message,
            target_audience=payload.target_audience,
            target_product_id=payload.target_product_id,
            sent_by=admin.id,
            notification_type=payload.notification_type,
            clock=clock,
            sink=sink,
        )
    except InvalidBroadcast as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        await db.rollback()
        logger.exception(f"[admin_notifications] broadcast failed: {e}")
        raise HTTPException(status_code=500, detail="브로드캐스트 생성에 실패했습니다.")

    return NotificationResponse(
        id=n.id,
        title=n.title,
        message=n.message,
        notification_type=n.notification_type,
        is_broadcast=True,
        target_audience=n.target_audience,
        target_product_id=n.target_product_id,
        is_read=False,
        extra=n.extra or {},
        created_at=n.created_at,
    )


@router.post("/run-check")
async def run_subscription_check(
    admin: User = Depends(get_current_admin),
    notifier: SubscriptionNotifier = Depends(get_notifier),
):
    """구독 상태 점검 수동 실행"""
    result = await notifier.check_and_update_all_subscriptions(triggered_by="admin")
    return result.to_dict()


@router.get("/status-summary")
async def subscription_status_summary(
    admin: User = Depends(get_current_admin),
    notifier: SubscriptionNotifier = Depends(get_notifier),
):
    """상태별 구독 수/금액"""
    return await notifier.status_summary()
