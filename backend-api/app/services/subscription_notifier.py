"""
구독 상태 점검 & 상태 변경 알림 발송

- check_and_update_all_subscriptions: 주기 점검 (celery beat)
- check_user_subscriptions: 요청 시 점검 (사용자가 알림 목록을 열 때)
두 경로 모두 구독 단위 락 안에서 같은 상태 전이 함수(evaluate_transition)를 사용한다.
알림은 부수 효과: 생성 실패는 로그만 남기고 상태 변경을 막지 않는다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.core.locks import SubscriptionLock, SubscriptionLockTimeout, local_subscription_lock
from app.core.realtime import NotificationSink, NullNotificationSink
from app.models import Notification, Subscription
from app.models.notification import TRIGGERED_BY_VALUES
from app.services.subscription_state import (
    NOTIFICATION_TYPES,
    STATUS_ACTIVE,
    STATUS_EXPIRESOON,
    STATUS_EXPIRED,
    StatusTransition,
    days_remaining,
    evaluate_transition,
    hours_remaining,
    is_day_granularity,
    minutes_remaining,
)
from app.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

# 같은 (구독, 알림 유형) 재발송 금지 구간 (구독 단위 락과 별개로 적용)
DEBOUNCE_WINDOW = timedelta(minutes=10)
EXPIRED_BACKFILL_LIMIT = 100


@dataclass
class CheckResult:
    triggered_by: str
    timestamp: datetime
    success: bool = False
    processed: int = 0
    expired: List[Dict[str, Any]] = field(default_factory=list)
    expiresoon: List[Dict[str, Any]] = field(default_factory=list)
    notifications: List[str] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "triggered_by": self.triggered_by,
            "timestamp": self.timestamp.isoformat(),
            "processed": self.processed,
            "expired": {"count": len(self.expired), "details": self.expired},
            "expiresoon": {"count": len(self.expiresoon), "details": self.expiresoon},
            "notifications": self.notifications,
            "errors": self.errors,
        }


def _remaining_label(subscription: Subscription, now: datetime) -> str:
    unit = subscription.duration_unit
    if unit == "minutes":
        return f"{minutes_remaining(now, subscription.end_date)}분"
    if unit == "hours":
        return f"{hours_remaining(now, subscription.end_date)}시간"
    return f"{days_remaining(now, subscription.end_date)}일"


def build_status_message(subscription: Subscription, product_name: str, new_status: str, now: datetime) -> Tuple[str, str, str]:
    """(notification_type, title, message)"""
    if new_status == STATUS_ACTIVE:
        return (
            NOTIFICATION_TYPES[STATUS_ACTIVE],
            "구독 활성화",
            f'"{product_name}" 구독이 활성화되었습니다!',
        )
    if new_status == STATUS_EXPIRESOON:
        return (
            NOTIFICATION_TYPES[STATUS_EXPIRESOON],
            "구독 만료 예정",
            f'"{product_name}" 구독이 {_remaining_label(subscription, now)} 후 만료됩니다. 계속 이용하시려면 갱신해 주세요.',
        )
    if new_status == STATUS_EXPIRED:
        return (
            NOTIFICATION_TYPES[STATUS_EXPIRED],
            "구독 만료",
            f'"{product_name}" 구독이 만료되었습니다. 갱신하면 다시 이용할 수 있습니다.',
        )
    return (
        "general",
        "구독 정보 변경",
        f'"{product_name}" 구독 상태가 변경되었습니다.',
    )


class SubscriptionNotifier:
    def __init__(
        self,
        db: AsyncSession,
        sink: Optional[NotificationSink] = None,
        clock: Optional[Clock] = None,
        lock: Optional[SubscriptionLock] = None,
    ):
        self.db = db
        self.store = SubscriptionStore(db)
        self.sink = sink or NullNotificationSink()
        self.clock = clock or system_clock
        self.lock = lock or local_subscription_lock

    # ── 알림 생성 ────────────────────────────────────

    async def _find_duplicate(self, subscription: Subscription, notification_type: str, now: datetime) -> Optional[Notification]:
        recent = await self.store.find_notification(
            subscription_id=subscription.id,
            notification_type=notification_type,
            created_from=now - DEBOUNCE_WINDOW,
        )
        if recent:
            return recent

        # 일 단위 만료 예정 알림은 하루 한 번
        if notification_type == NOTIFICATION_TYPES[STATUS_EXPIRESOON] and is_day_granularity(subscription.duration_unit):
            start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
            return await self.store.find_notification(
                subscription_id=subscription.id,
                notification_type=notification_type,
                created_from=start_of_day,
                created_to=start_of_day + timedelta(days=1),
            )
        return None

    async def _create_status_notification(
        self,
        subscription: Subscription,
        old_status: Optional[str],
        new_status: str,
        triggered_by: str,
    ) -> Tuple[Optional[Notification], bool]:
        """(notification, created): 중복이면 기존 알림과 False"""
        now = self.clock.now()
        product = await self.store.get_product(subscription.product_id)
        product_name = product.name if product else "상품"
        notification_type = build_status_message(subscription, product_name, new_status, now)[0]

        # 알림 저장은 savepoint 안에서 (실패 시 세션 전체를 롤백하지 않는다)
        async with self.db.begin_nested():
            existing = await self._find_duplicate(subscription, notification_type, now)
            if existing:
                logger.info(f"[notifier] skip duplicate {notification_type} for subscription {subscription.id}")
                return existing, False
            notification = await self.store.insert_notification(
                self._build_notification(subscription, old_status, new_status, triggered_by, product_name, now),
                commit=False,
            )

        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self._publish(notification)
        return notification, True

    def _build_notification(
        self,
        subscription: Subscription,
        old_status: Optional[str],
        new_status: str,
        triggered_by: str,
        product_name: str,
        now: datetime,
    ) -> Notification:
        notification_type, title, message = build_status_message(subscription, product_name, new_status, now)
        return Notification(
            title=title,
            message=message,
            user_id=subscription.user_id,
            subscription_id=subscription.id,
            notification_type=notification_type,
            is_broadcast=False,
            is_read=False,
            created_at=now,
            extra={
                "old_status": old_status,
                "new_status": new_status,
                "triggered_by": triggered_by if triggered_by in TRIGGERED_BY_VALUES else "system",
                "subscription_details": {
                    "product_name": product_name,
                    "duration": subscription.duration,
                    "duration_value": subscription.duration_value,
                    "duration_unit": subscription.duration_unit,
                    "price": subscription.price,
                    "status": new_status,
                    "start_date": subscription.start_date.isoformat(),
                    "end_date": subscription.end_date.isoformat(),
                    "days_remaining": days_remaining(now, subscription.end_date),
                },
            },
        )

    async def create_status_change_notification(
        self,
        subscription: Subscription,
        old_status: Optional[str],
        new_status: str,
        triggered_by: str = "system",
    ) -> Optional[Notification]:
        """상태 변경 알림 생성 (10분 내 동일 알림이 있으면 그 알림 반환, 실패 시 None)"""
        try:
            notification, _ = await self._create_status_notification(subscription, old_status, new_status, triggered_by)
            return notification
        except Exception as e:
            logger.exception(f"[notifier] create notification failed for subscription {subscription.id}: {e}")
            return None

    async def notify_new_subscription(self, subscription: Subscription) -> Optional[Notification]:
        """구매 직후 알림 (구매 시점 상태 기준)"""
        return await self.create_status_change_notification(subscription, None, subscription.status, "payment")

    async def _publish(self, notification: Notification) -> None:
        if notification.user_id is None:
            return
        try:
            await self.sink.publish(str(notification.user_id), {
                "event": "new_notification",
                "notification_id": str(notification.id),
                "title": notification.title,
                "message": notification.message,
                "type": notification.notification_type,
                "timestamp": notification.created_at.isoformat(),
            })
        except Exception as e:
            logger.warning(f"[notifier] realtime publish failed: {e}")

    # ── 상태 점검 ────────────────────────────────────

    async def process_subscription(self, subscription_id, triggered_by: str, result: CheckResult) -> Optional[StatusTransition]:
        """구독 하나 재계산 → 저장 → (필요 시) 알림. 락 보유자만 수행"""
        async with self.lock.hold(str(subscription_id)):
            subscription = await self.store.get_subscription(subscription_id)
            if subscription is None:
                return None
            # 다른 점검기가 먼저 바꿨을 수 있으므로 락 안에서 다시 읽는다
            await self.db.refresh(subscription)

            now = self.clock.now()
            transition = evaluate_transition(now, subscription.end_date, subscription.duration_unit, subscription.status)

            subscription.last_status_check = now
            if transition.changed:
                subscription.status = transition.new_status
            await self.store.save(subscription)

            if transition.changed:
                logger.info(
                    f"[notifier] subscription {subscription.id}: {transition.old_status} → {transition.new_status}"
                )

                detail = {
                    "subscription_id": str(subscription.id),
                    "user_id": str(subscription.user_id),
                    "old_status": transition.old_status,
                    "new_status": transition.new_status,
                    "end_date": subscription.end_date.isoformat(),
                }
                if transition.new_status == STATUS_EXPIRED:
                    result.expired.append(detail)
                elif transition.new_status == STATUS_EXPIRESOON:
                    result.expiresoon.append(detail)

            if transition.should_notify:
                try:
                    notification, created = await self._create_status_notification(
                        subscription, transition.old_status, transition.new_status, triggered_by
                    )
                except Exception as e:
                    logger.exception(f"[notifier] notification failed for subscription {subscription_id}: {e}")
                    notification, created = None, False
                if notification is not None and created:
                    result.notifications.append(str(notification.id))

            return transition

    async def _process_many(self, subscription_ids: List, result: CheckResult) -> None:
        for subscription_id in subscription_ids:
            try:
                await self.process_subscription(subscription_id, result.triggered_by, result)
                result.processed += 1
            except SubscriptionLockTimeout as e:
                # 다른 점검기가 처리 중 → 다음 주기에 다시 확인
                result.errors.append({"subscription_id": str(subscription_id), "type": "locked", "error": str(e)})
            except Exception as e:
                logger.exception(f"[notifier] processing subscription {subscription_id} failed: {e}")
                await self.db.rollback()
                result.errors.append({"subscription_id": str(subscription_id), "type": "subscription_processing", "error": str(e)})

    async def backfill_expired_notifications(self, result: CheckResult) -> None:
        """만료 상태인데 만료 알림이 없는 구독에 알림 보충"""
        now = self.clock.now()
        expired = await self.store.load_subscriptions(
            statuses=[STATUS_EXPIRED], ended_before=now, limit=EXPIRED_BACKFILL_LIMIT
        )
        for subscription_id in [s.id for s in expired]:
            try:
                existing = await self.store.find_notification(
                    subscription_id=subscription_id,
                    notification_type=NOTIFICATION_TYPES[STATUS_EXPIRED],
                )
                if existing:
                    continue
                subscription = await self.store.get_subscription(subscription_id)
                notification, created = await self._create_status_notification(
                    subscription, STATUS_EXPIRESOON, STATUS_EXPIRED, result.triggered_by
                )
                if notification is not None and created:
                    result.notifications.append(str(notification.id))
            except Exception as e:
                logger.exception(f"[notifier] expired backfill failed for {subscription_id}: {e}")
                result.errors.append({"subscription_id": str(subscription_id), "type": "expired_backfill", "error": str(e)})

    async def check_and_update_all_subscriptions(self, triggered_by: str = "cron") -> CheckResult:
        """주기 점검: 결제 완료 + 아직 만료 처리되지 않은 모든 구독"""
        result = CheckResult(triggered_by=triggered_by, timestamp=self.clock.now())
        try:
            subscriptions = await self.store.load_subscriptions(statuses=[STATUS_ACTIVE, STATUS_EXPIRESOON])
            await self._process_many([s.id for s in subscriptions], result)
            await self.backfill_expired_notifications(result)
            result.success = True
        except Exception as e:
            logger.exception(f"[notifier] subscription check failed: {e}")
            result.errors.append({"type": "fatal", "error": str(e)})

        logger.info(
            f"[notifier] check done ({triggered_by}): processed={result.processed} "
            f"expired={len(result.expired)} expiresoon={len(result.expiresoon)} "
            f"notifications={len(result.notifications)} errors={len(result.errors)}"
        )
        return result

    async def check_user_subscriptions(self, user_id, triggered_by: str = "manual_check") -> CheckResult:
        """요청 시 점검: 한 사용자의 활성/만료 예정 구독"""
        result = CheckResult(triggered_by=triggered_by, timestamp=self.clock.now())
        try:
            subscriptions = await self.store.load_subscriptions(
                user_id=user_id, statuses=[STATUS_ACTIVE, STATUS_EXPIRESOON]
            )
            await self._process_many([s.id for s in subscriptions], result)
            result.success = True
        except Exception as e:
            logger.exception(f"[notifier] user subscription check failed for {user_id}: {e}")
            result.errors.append({"type": "fatal", "error": str(e)})
        return result

    async def status_summary(self) -> Dict[str, Any]:
        by_status = await self.store.count_by_status()
        return {
            "total_subscriptions": sum(v["count"] for v in by_status.values()),
            "total_value": sum(v["total_value"] for v in by_status.values()),
            "by_status": by_status,
        }
