"""
구독 상태 주기 점검 태스크 (celery beat)
"""

import asyncio
import logging

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.celery_app import celery_app
from app.core.config import settings
from app.core.database import build_engine
from app.core.locks import get_subscription_lock
from app.core.realtime import get_notification_sink
from app.services.subscription_notifier import SubscriptionNotifier

logger = logging.getLogger(__name__)


async def run_subscription_check(triggered_by: str = "cron") -> dict:
    """점검 1회 실행. 워커 이벤트 루프마다 엔진/Redis 연결을 새로 만든다."""
    engine = build_engine(settings.DATABASE_URL)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        async with session_factory() as db:
            notifier = SubscriptionNotifier(
                db,
                sink=get_notification_sink(redis_client),
                lock=get_subscription_lock(redis_client),
            )
            result = await notifier.check_and_update_all_subscriptions(triggered_by=triggered_by)
            return result.to_dict()
    finally:
        await redis_client.aclose()
        await engine.dispose()


@celery_app.task(name="app.tasks.subscription_tasks.check_subscription_statuses", ignore_result=False)
def check_subscription_statuses(triggered_by: str = "cron") -> dict:
    """beat 주기마다 모든 활성/만료 예정 구독 점검"""
    summary = asyncio.run(run_subscription_check(triggered_by))
    logger.info(
        f"[subscription_tasks] processed={summary['processed']} "
        f"expired={summary['expired']['count']} expiresoon={summary['expiresoon']['count']} "
        f"errors={len(summary['errors'])}"
    )
    return summary
