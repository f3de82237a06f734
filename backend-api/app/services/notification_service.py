"""
알림 조회/읽음/숨김 서비스

브로드캐스트 노출 여부는 사용자 구독 이력으로 만든 audience 구간과
알림 created_at을 비교해 판단한다 (audience_service 참고).
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.core.realtime import NotificationSink
from app.models import Notification, NotificationHide, NotificationRead, User
from app.models.notification import AUDIENCE_ALL, AUDIENCE_PRODUCT_WISE, TARGET_AUDIENCES
from app.services.audience_service import AudienceRanges, compute_audience_ranges, is_notification_visible
from app.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)


class InvalidBroadcast(ValueError):
    pass


async def compute_user_audience_ranges(db: AsyncSession, user: User, now) -> AudienceRanges:
    subscriptions = await SubscriptionStore(db).load_subscriptions(user_id=user.id)
    return compute_audience_ranges(subscriptions, now)


async def _hidden_ids(db: AsyncSession, user_id) -> set:
    res = await db.execute(select(NotificationHide.notification_id).where(NotificationHide.user_id == user_id))
    return {str(row[0]) for row in res.all()}


async def _read_broadcast_ids(db: AsyncSession, user_id) -> set:
    res = await db.execute(select(NotificationRead.notification_id).where(NotificationRead.user_id == user_id))
    return {str(row[0]) for row in res.all()}


async def visible_notifications(
    db: AsyncSession,
    user: User,
    clock: Clock = system_clock,
    types: Optional[Sequence[str]] = None,
) -> List[Notification]:
    """사용자에게 보이는 알림 전체 (최신순)"""
    now = clock.now()
    ranges = await compute_user_audience_ranges(db, user, now)
    hidden = await _hidden_ids(db, user.id)

    stmt = select(Notification).where(
        or_(Notification.user_id == user.id, Notification.is_broadcast == True)  # noqa: E712
    )
    if types:
        stmt = stmt.where(Notification.notification_type.in_(list(types)))
    res = await db.execute(stmt.order_by(Notification.created_at.desc()))

    return [
        n for n in res.scalars().all()
        if is_notification_visible(n, user.id, user.created_at, ranges, hidden)
    ]


async def list_user_notifications(
    db: AsyncSession,
    user: User,
    page: int = 1,
    limit: int = 20,
    unread_only: bool = False,
    types: Optional[Sequence[str]] = None,
    clock: Clock = system_clock,
) -> Dict[str, Any]:
    items = await visible_notifications(db, user, clock, types)
    read_broadcasts = await _read_broadcast_ids(db, user.id)

    def _is_read(n: Notification) -> bool:
        if n.is_broadcast:
            return str(n.id) in read_broadcasts
        return bool(n.is_read)

    unread_count = sum(1 for n in items if not _is_read(n))
    if unread_only:
        items = [n for n in items if not _is_read(n)]

    total = len(items)
    page = max(1, page)
    offset = (page - 1) * limit
    page_items = items[offset:offset + limit]

    return {
        "notifications": [
            {"notification": n, "is_read": _is_read(n)} for n in page_items
        ],
        "total": total,
        "unread_count": unread_count,
        "page": page,
        "limit": limit,
        "has_more": offset + limit < total,
    }


async def _get_visible(db: AsyncSession, user: User, notification_id, clock: Clock) -> Optional[Notification]:
    try:
        nid = notification_id if isinstance(notification_id, uuid.UUID) else uuid.UUID(str(notification_id))
    except (ValueError, TypeError):
        return None
    notification = await db.get(Notification, nid)
    if notification is None:
        return None
    if not notification.is_broadcast:
        return notification if str(notification.user_id) == str(user.id) else None
    ranges = await compute_user_audience_ranges(db, user, clock.now())
    if not is_notification_visible(notification, user.id, user.created_at, ranges):
        return None
    return notification


async def mark_as_read(db: AsyncSession, user: User, notification_id, clock: Clock = system_clock) -> bool:
    """단건 읽음 (개인: is_read, 브로드캐스트: 사용자별 읽음 기록)"""
    notification = await _get_visible(db, user, notification_id, clock)
    if notification is None:
        return False

    if notification.is_broadcast:
        existing = await db.execute(
            select(NotificationRead.id).where(
                NotificationRead.notification_id == notification.id,
                NotificationRead.user_id == user.id,
            )
        )
        if existing.first() is None:
            db.add(NotificationRead(notification_id=notification.id, user_id=user.id, read_at=clock.now()))
    else:
        notification.is_read = True
    await db.commit()
    return True


async def mark_all_as_read(db: AsyncSession, user: User, clock: Clock = system_clock) -> int:
    """보이는 알림 전부 읽음 처리, 새로 읽음 처리된 개수 반환"""
    items = await visible_notifications(db, user, clock)
    read_broadcasts = await _read_broadcast_ids(db, user.id)
    now = clock.now()

    count = 0
    for n in items:
        if n.is_broadcast:
            if str(n.id) not in read_broadcasts:
                db.add(NotificationRead(notification_id=n.id, user_id=user.id, read_at=now))
                count += 1
        elif not n.is_read:
            count += 1

    await db.execute(
        update(Notification)
        .where(Notification.user_id == user.id, Notification.is_read == False)  # noqa: E712
        .values(is_read=True)
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    return count


async def hide_for_user(db: AsyncSession, user: User, notification_id, clock: Clock = system_clock) -> bool:
    """사용자 목록에서만 숨김 (브로드캐스트 원본은 유지)"""
    notification = await _get_visible(db, user, notification_id, clock)
    if notification is None:
        return False

    existing = await db.execute(
        select(NotificationHide.id).where(
            NotificationHide.notification_id == notification.id,
            NotificationHide.user_id == user.id,
        )
    )
    if existing.first() is None:
        db.add(NotificationHide(notification_id=notification.id, user_id=user.id, hidden_at=clock.now()))
        await db.commit()
    return True


async def hide_all_for_user(db: AsyncSession, user: User, clock: Clock = system_clock) -> int:
    items = await visible_notifications(db, user, clock)
    now = clock.now()
    for n in items:
        db.add(NotificationHide(notification_id=n.id, user_id=user.id, hidden_at=now))
    await db.commit()
    return len(items)


async def create_broadcast(
    db: AsyncSession,
    title: str,
    message: str,
    target_audience: str = AUDIENCE_ALL,
    target_product_id=None,
    sent_by=None,
    notification_type: str = "general",
    clock: Clock = system_clock,
    sink: Optional[NotificationSink] = None,
) -> Notification:
    """관리자 브로드캐스트 생성. created_at은 생성 시각으로 고정된다."""
    if target_audience not in TARGET_AUDIENCES:
        raise InvalidBroadcast(f"지원하지 않는 대상입니다: {target_audience}")
    if target_audience == AUDIENCE_PRODUCT_WISE and target_product_id is None:
        raise InvalidBroadcast("상품별 알림에는 대상 상품이 필요합니다.")
    if target_product_id is not None:
        product = await SubscriptionStore(db).get_product(target_product_id)
        if product is None:
            raise InvalidBroadcast("대상 상품을 찾을 수 없습니다.")
        target_product_id = product.id

    notification = Notification(
        title=title,
        message=message,
        user_id=None,
        sent_by=sent_by,
        notification_type=notification_type,
        is_broadcast=True,
        target_audience=target_audience,
        target_product_id=target_product_id,
        is_read=False,
        created_at=clock.now(),
        extra={"triggered_by": "admin"},
    )
    notification = await SubscriptionStore(db).insert_notification(notification)
    logger.info(
        f"[notifications] broadcast {notification.id} created (audience={target_audience}, product={target_product_id})"
    )

    # 대상 사용자 계산 없이 전체 채널 이벤트만 남긴다 (클라이언트가 목록을 다시 조회)
    if sink is not None:
        try:
            await sink.publish("broadcast", {
                "event": "broadcast_notification",
                "notification_id": str(notification.id),
                "title": notification.title,
                "type": notification.notification_type,
                "timestamp": notification.created_at.isoformat(),
            })
        except Exception as e:
            logger.warning(f"[notifications] broadcast publish failed: {e}")
    return notification
