"""
실시간 알림 발행 (Redis pub/sub)

발행은 best-effort: 실패해도 상태 변경 트랜잭션을 중단시키지 않는다.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Protocol

from redis.asyncio import Redis

from app.core.config import settings

logger = logging.getLogger(__name__)


def user_channel(user_id: str) -> str:
    return f"notifications:{user_id}"


class NotificationSink(Protocol):
    async def publish(self, user_id: str, event: Dict[str, Any]) -> None:
        ...


class NullNotificationSink:
    """발행 비활성화 시 사용"""

    async def publish(self, user_id: str, event: Dict[str, Any]) -> None:
        return None


class RedisNotificationSink:
    """유저별 채널로 new_notification 이벤트 발행"""

    def __init__(self, redis: Redis):
        self.redis = redis

    async def publish(self, user_id: str, event: Dict[str, Any]) -> None:
        try:
            payload = json.dumps(event, ensure_ascii=False, default=str)
            await self.redis.publish(user_channel(str(user_id)), payload)
        except Exception as e:
            logger.warning(f"[realtime] publish failed for user {user_id}: {e}")


def get_notification_sink(redis: Redis) -> NotificationSink:
    if settings.NOTIFICATION_PUBSUB_ENABLED:
        return RedisNotificationSink(redis)
    return NullNotificationSink()
