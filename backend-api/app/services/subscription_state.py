"""
구독 상태 머신

상태는 (now, end_date, duration_unit)의 순수 함수이되
active → expiresoon → expired 방향으로만 진행한다.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

STATUS_ACTIVE = "active"
STATUS_EXPIRESOON = "expiresoon"
STATUS_EXPIRED = "expired"

EXPIRING_SOON_DAYS = 10
# 짧은 데모용 상품도 "곧 만료" 경고를 받을 수 있도록 단위별 임계값
EXPIRING_SOON_THRESHOLDS = {
    "minutes": timedelta(minutes=5),
    "hours": timedelta(hours=2),
}
DEFAULT_EXPIRING_SOON_THRESHOLD = timedelta(days=EXPIRING_SOON_DAYS)

# 일 단위 구독은 남은 일수가 정확히 이 값일 때만 리마인더 발송
REMINDER_DAYS = (10, 3)

NOTIFICATION_TYPES = {
    STATUS_ACTIVE: "subscription_active",
    STATUS_EXPIRESOON: "subscription_expiring_soon",
    STATUS_EXPIRED: "subscription_expired",
}


def _ceil_units(delta: timedelta, unit: timedelta) -> int:
    return math.ceil(delta / unit)


def days_remaining(now: datetime, end_date: datetime) -> int:
    if end_date <= now:
        return 0
    return _ceil_units(end_date - now, timedelta(days=1))


def hours_remaining(now: datetime, end_date: datetime) -> int:
    if end_date <= now:
        return 0
    return _ceil_units(end_date - now, timedelta(hours=1))


def minutes_remaining(now: datetime, end_date: datetime) -> int:
    if end_date <= now:
        return 0
    return _ceil_units(end_date - now, timedelta(minutes=1))


def is_day_granularity(duration_unit: Optional[str]) -> bool:
    return duration_unit not in EXPIRING_SOON_THRESHOLDS


def expiring_soon_threshold(duration_unit: Optional[str]) -> timedelta:
    return EXPIRING_SOON_THRESHOLDS.get(duration_unit, DEFAULT_EXPIRING_SOON_THRESHOLD)


def is_expiring_soon(now: datetime, end_date: datetime, duration_unit: Optional[str]) -> bool:
    remaining = end_date - now
    return timedelta(0) <= remaining <= expiring_soon_threshold(duration_unit)


def compute_status(
    now: datetime,
    end_date: datetime,
    duration_unit: Optional[str],
    current_status: Optional[str] = None,
) -> str:
    """현재 시각 기준 저장해야 할 상태.

    expired는 종단 상태. expiresoon → active 역행은 남은 기간이 10일을 넘는
    데이터 보정 상황에서만 허용한다.
    """
    if end_date < now or current_status == STATUS_EXPIRED:
        return STATUS_EXPIRED

    target = STATUS_EXPIRESOON if is_expiring_soon(now, end_date, duration_unit) else STATUS_ACTIVE

    if current_status == STATUS_EXPIRESOON and target == STATUS_ACTIVE:
        if days_remaining(now, end_date) > EXPIRING_SOON_DAYS:
            return STATUS_ACTIVE
        return STATUS_EXPIRESOON

    return target


@dataclass(frozen=True)
class StatusTransition:
    old_status: Optional[str]
    new_status: str
    should_notify: bool
    days_remaining: int
    is_reminder: bool = False

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status

    @property
    def notification_type(self) -> str:
        return NOTIFICATION_TYPES.get(self.new_status, "general")


def evaluate_transition(
    now: datetime,
    end_date: datetime,
    duration_unit: Optional[str],
    current_status: Optional[str],
) -> StatusTransition:
    """상태 재계산 + 알림 후보 여부 판단 (중복 억제는 발송 단계에서 별도 수행)"""
    new_status = compute_status(now, end_date, duration_unit, current_status)
    remaining_days = days_remaining(now, end_date)

    if new_status == current_status:
        # 일 단위 구독: 이미 expiresoon인 동안 D-10, D-3 에만 리마인더
        reminder = (
            new_status == STATUS_EXPIRESOON
            and is_day_granularity(duration_unit)
            and remaining_days in REMINDER_DAYS
        )
        return StatusTransition(current_status, new_status, reminder, remaining_days, is_reminder=reminder)

    if new_status == STATUS_EXPIRED:
        return StatusTransition(current_status, new_status, True, remaining_days)

    if new_status == STATUS_EXPIRESOON:
        # 일 단위 구독은 진입 시점에도 D-10, D-3 일 때만 알림 (점검이 늦어 D-9에 진입하면 조용히 전환)
        notify = not is_day_granularity(duration_unit) or remaining_days in REMINDER_DAYS
        return StatusTransition(current_status, new_status, notify, remaining_days)

    # expiresoon → active 데이터 보정
    return StatusTransition(current_status, new_status, False, remaining_days)


def initial_status(now: datetime, end_date: datetime, duration_unit: Optional[str]) -> StatusTransition:
    """구매 시점 상태 (아주 짧은 상품은 바로 expiresoon으로 시작)"""
    status = compute_status(now, end_date, duration_unit)
    return StatusTransition(None, status, status == STATUS_EXPIRESOON, days_remaining(now, end_date))
