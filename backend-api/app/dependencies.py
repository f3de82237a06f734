from fastapi import Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, get_clock
from app.core.database import get_db, get_redis
from app.core.locks import SubscriptionLock, get_subscription_lock
from app.core.realtime import NotificationSink, get_notification_sink
from app.services.subscription_notifier import SubscriptionNotifier
from app.services.subscription_service import SubscriptionService

# 라우터 공통 의존성. 테스트는 provide_sink / provide_lock / get_clock 을 override 한다.


async def provide_sink(redis: Redis = Depends(get_redis)) -> NotificationSink:
    return get_notification_sink(redis)


async def provide_lock(redis: Redis = Depends(get_redis)) -> SubscriptionLock:
    return get_subscription_lock(redis)


async def get_notifier(
    db: AsyncSession = Depends(get_db),
    sink: NotificationSink = Depends(provide_sink),
    lock: SubscriptionLock = Depends(provide_lock),
    clock: Clock = Depends(get_clock),
) -> SubscriptionNotifier:
    return SubscriptionNotifier(db, sink=sink, clock=clock, lock=lock)


async def get_subscription_service(
    db: AsyncSession = Depends(get_db),
    notifier: SubscriptionNotifier = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
) -> SubscriptionService:
    return SubscriptionService(db, notifier=notifier, clock=clock)


__all__ = ["get_db", "get_redis", "provide_sink", "provide_lock", "get_notifier", "get_subscription_service"]
