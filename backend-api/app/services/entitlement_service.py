"""
구독 기간/연속 갱신 체인 계산

- 최초 구매: 새 체인, effective_start = start
- 만료 전 갱신: 기존 종료 시각부터 이어서 (체인 유지)
- 유예 기간(7일) 내 갱신: 지금부터 (체인 유지)
- 유예 기간 초과: 새 체인, 과거 기사 열람 범위 초기화
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence

from dateutil.relativedelta import relativedelta

from app.services.subscription_state import STATUS_ACTIVE, STATUS_EXPIRESOON, STATUS_EXPIRED

RENEWAL_FIRST_PURCHASE = "first_purchase"
RENEWAL_CONTIGUOUS = "contiguous"
RENEWAL_GRACE_PERIOD = "grace_period"
RENEWAL_FRESH = "fresh"

GRACE_PERIOD_DAYS = 7
GRACE_PERIOD = timedelta(days=GRACE_PERIOD_DAYS)


class InvalidSubscriptionPeriod(ValueError):
    """end_date <= start_date 인 구독"""


class UnsupportedDurationUnit(ValueError):
    pass


def add_duration(start: datetime, value: int, unit: str) -> datetime:
    """기간 더하기 (months/years는 달력 기준)"""
    if unit == "minutes":
        return start + timedelta(minutes=value)
    if unit == "hours":
        return start + timedelta(hours=value)
    if unit == "days":
        return start + timedelta(days=value)
    if unit == "weeks":
        return start + timedelta(weeks=value)
    if unit == "months":
        return start + relativedelta(months=value)
    if unit == "years":
        return start + relativedelta(years=value)
    raise UnsupportedDurationUnit(f"지원하지 않는 기간 단위입니다: {unit}")


def validate_period(start_date: datetime, end_date: datetime) -> None:
    if end_date <= start_date:
        raise InvalidSubscriptionPeriod("구독 종료일은 시작일 이후여야 합니다.")


def generate_chain_id(user_id, product_id, now: datetime) -> str:
    epoch_ms = int((now - datetime(1970, 1, 1)).total_seconds() * 1000)
    return f"{user_id}_{product_id}_{epoch_ms}"


def gap_in_days(previous_end: datetime, new_start: datetime) -> int:
    """이전 구독 종료 ~ 새 구독 시작 사이 일수 (겹치면 0)"""
    if new_start <= previous_end:
        return 0
    return math.ceil((new_start - previous_end) / timedelta(days=1))


@dataclass(frozen=True)
class CoveragePlan:
    """새 구독 한 건의 기간/체인 결정 결과"""
    renewal_type: str
    start_date: datetime
    end_date: datetime
    effective_start_date: datetime
    contiguous_chain_id: str
    gap_days: int = 0

    @property
    def is_contiguous(self) -> bool:
        return self.renewal_type in (RENEWAL_CONTIGUOUS, RENEWAL_GRACE_PERIOD)


def plan_first_purchase(now: datetime, user_id, product_id, duration_value: int, duration_unit: str) -> CoveragePlan:
    end_date = add_duration(now, duration_value, duration_unit)
    validate_period(now, end_date)
    return CoveragePlan(
        renewal_type=RENEWAL_FIRST_PURCHASE,
        start_date=now,
        end_date=end_date,
        effective_start_date=now,
        contiguous_chain_id=generate_chain_id(user_id, product_id, now),
    )


def plan_renewal(
    now: datetime,
    existing,
    duration_value: int,
    duration_unit: str,
    chain_effective_start: Optional[datetime] = None,
) -> CoveragePlan:
    """기존 구독(existing)을 갱신할 때의 기간/체인 결정.

    chain_effective_start: 기존 체인의 effective_start_date (없으면 existing 기준)
    """
    inherited_start = chain_effective_start or existing.original_start_date or existing.start_date
    chain_id = existing.contiguous_chain_id or generate_chain_id(existing.user_id, existing.product_id, now)

    if now < existing.end_date:
        # 만료 전 구매여도 커버리지는 기존 종료 시각부터 시작
        start_date = existing.end_date
        renewal_type = RENEWAL_CONTIGUOUS
        effective_start = inherited_start
    elif now - existing.end_date <= GRACE_PERIOD:
        start_date = now
        renewal_type = RENEWAL_GRACE_PERIOD
        effective_start = inherited_start
    else:
        start_date = now
        renewal_type = RENEWAL_FRESH
        effective_start = now
        chain_id = generate_chain_id(existing.user_id, existing.product_id, now)

    end_date = add_duration(start_date, duration_value, duration_unit)
    validate_period(start_date, end_date)

    return CoveragePlan(
        renewal_type=renewal_type,
        start_date=start_date,
        end_date=end_date,
        effective_start_date=effective_start,
        contiguous_chain_id=chain_id,
        gap_days=gap_in_days(existing.end_date, start_date),
    )


def resolve_effective_start_date(subscription, chain: Sequence = ()) -> datetime:
    """체인 최초 구독의 시작 시각 (체인 정보가 없으면 구독 자체 기준)"""
    members = sorted(
        (s for s in chain if s.start_date is not None),
        key=lambda s: s.start_date,
    )
    if members:
        head = members[0]
        return head.original_start_date or head.start_date
    return subscription.original_start_date or subscription.start_date


@dataclass(frozen=True)
class RenewalEligibility:
    can_renew: bool
    renewal_type: str
    message: str
    grace_period_days: Optional[int] = None


def renewal_eligibility(subscription, now: datetime) -> RenewalEligibility:
    """갱신 버튼 노출 여부 및 갱신 유형 안내"""
    end_date = subscription.end_date

    if subscription.status == STATUS_EXPIRESOON and end_date > now:
        return RenewalEligibility(
            can_renew=True,
            renewal_type="before_expiry",
            message="지금 갱신하면 열람 권한이 끊기지 않습니다.",
            grace_period_days=math.ceil((end_date - now) / timedelta(days=1)),
        )

    if subscription.status == STATUS_EXPIRED or end_date <= now:
        since_expiry = now - end_date
        if since_expiry <= GRACE_PERIOD:
            return RenewalEligibility(
                can_renew=True,
                renewal_type="grace_period",
                message="유예 기간 내 갱신 시 과거 기사 열람 범위가 유지됩니다.",
                grace_period_days=max(0, GRACE_PERIOD_DAYS - math.ceil(since_expiry / timedelta(days=1))),
            )
        return RenewalEligibility(
            can_renew=True,
            renewal_type="fresh_purchase",
            message="갱신 시 과거 기사 열람 범위가 초기화됩니다.",
        )

    if subscription.status == STATUS_ACTIVE:
        return RenewalEligibility(
            can_renew=False,
            renewal_type="not_eligible",
            message="구독이 아직 활성 상태입니다.",
        )

    return RenewalEligibility(can_renew=False, renewal_type="not_eligible", message="갱신할 수 없는 상태입니다.")
