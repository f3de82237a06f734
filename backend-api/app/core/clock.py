"""
시간 소스

모든 시각은 naive UTC로 다룬다 (DB 컬럼도 naive UTC로 저장).
"""

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """naive UTC 현재 시각"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """aware datetime은 UTC로 변환 후 tzinfo 제거"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Clock:
    """시스템 시계"""

    def now(self) -> datetime:
        return utcnow()


class FrozenClock(Clock):
    """고정/수동 진행 시계 (테스트, 재현용)"""

    def __init__(self, start: datetime):
        self._now = to_naive_utc(start)

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = to_naive_utc(moment)

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now


system_clock = Clock()


def get_clock() -> Clock:
    """시계 의존성 (테스트에서 dependency_overrides로 교체)"""
    return system_clock
