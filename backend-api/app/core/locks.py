"""
구독 단위 상태 변경 락

주기 점검(celery)과 요청 시 점검(알림 조회)이 같은 구독을 동시에 바꾸지 않도록
구독 ID 하나당 한 명의 소유자만 상태 변경을 수행한다.
- RedisSubscriptionLock: 프로세스 간 (redis-py 내장 Lock)
- LocalSubscriptionLock: 단일 프로세스 (asyncio.Lock 레지스트리)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Dict, Protocol, Tuple

from redis.asyncio import Redis
from redis.exceptions import LockError, RedisError

from app.core.config import settings

logger = logging.getLogger(__name__)

LOCK_TIMEOUT_SECONDS = 30
LOCK_BLOCKING_TIMEOUT_SECONDS = 5


class SubscriptionLockTimeout(Exception):
    """다른 점검기가 해당 구독을 처리 중"""


class SubscriptionLock(Protocol):
    def hold(self, subscription_id: str) -> AsyncContextManager[None]:
        ...


def _lock_key(subscription_id: str) -> str:
    return f"lock:subscription-check:{subscription_id}"


class LocalSubscriptionLock:
    """단일 프로세스용 구독 락"""

    def __init__(self):
        # 구독 ID → (락, 보유/대기 중인 수). 아무도 쓰지 않으면 항목 제거
        self._locks: Dict[str, Tuple[asyncio.Lock, int]] = {}

    def _acquire_entry(self, key: str) -> asyncio.Lock:
        lock, users = self._locks.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[key] = (lock, users + 1)
        return lock

    def _release_entry(self, key: str) -> None:
        lock, users = self._locks[key]
        if users <= 1:
            del self._locks[key]
        else:
            self._locks[key] = (lock, users - 1)

    @asynccontextmanager
    async def hold(self, subscription_id: str) -> AsyncIterator[None]:
        key = str(subscription_id)
        lock = self._acquire_entry(key)
        try:
            async with lock:
                yield
        finally:
            self._release_entry(key)


class RedisSubscriptionLock:
    """Redis 기반 분산 구독 락"""

    def __init__(self, redis: Redis):
        self.redis = redis

    @asynccontextmanager
    async def hold(self, subscription_id: str) -> AsyncIterator[None]:
        lock = self.redis.lock(
            _lock_key(str(subscription_id)),
            timeout=LOCK_TIMEOUT_SECONDS,
            blocking_timeout=LOCK_BLOCKING_TIMEOUT_SECONDS,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            raise SubscriptionLockTimeout(f"락 획득 실패: {e}") from e
        if not acquired:
            raise SubscriptionLockTimeout(f"구독 {subscription_id} 점검 중 (락 대기 초과)")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # 타임아웃으로 이미 만료된 락
                logger.warning(f"[locks] lock already released: {subscription_id}")


# 프로세스 공용 로컬 락 (Redis 락 미사용 시)
local_subscription_lock = LocalSubscriptionLock()


def get_subscription_lock(redis: Redis) -> SubscriptionLock:
    if settings.USE_REDIS_LOCKS:
        return RedisSubscriptionLock(redis)
    return local_subscription_lock
