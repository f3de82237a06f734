"""
브로드캐스트 알림 대상(audience) 시간 구간 계산

사용자의 전체 구독 이력으로부터 "활성 / 곧 만료 / 만료" 상태였던 시간 구간을
전역 및 상품별로 병합해 두고, 브로드캐스트의 created_at이 그 구간 안에
있었는지로 노출 여부를 판단한다. 알림이 생성된 시점의 상태가 기준이므로
이후 사용자의 상태가 바뀌어도 이미 받은 알림은 계속 보이고,
나중에 해당 상태가 된 사용자에게 과거 알림이 소급 노출되지 않는다.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set

from app.models.notification import (
    AUDIENCE_ALL,
    AUDIENCE_GENERAL,
    AUDIENCE_ACTIVE,
    AUDIENCE_EXPIRESOON,
    AUDIENCE_EXPIRED,
    AUDIENCE_PRODUCT_WISE,
)
from app.services.interval_merger import TimeRange, merge_ranges, complement_ranges, ranges_contain
from app.services.subscription_state import (
    EXPIRING_SOON_DAYS,
    STATUS_ACTIVE,
    STATUS_EXPIRESOON,
    STATUS_EXPIRED,
)

STATE_AUDIENCES = (AUDIENCE_ACTIVE, AUDIENCE_EXPIRESOON, AUDIENCE_EXPIRED)
_STATUS_PRIORITY = {STATUS_ACTIVE: 3, STATUS_EXPIRESOON: 2, STATUS_EXPIRED: 1}


@dataclass
class CategoryRanges:
    """상태별 병합 구간"""
    active: List[TimeRange] = field(default_factory=list)
    expiresoon: List[TimeRange] = field(default_factory=list)
    expired: List[TimeRange] = field(default_factory=list)

    def for_audience(self, audience: str) -> List[TimeRange]:
        return getattr(self, audience, [])

    def coverage(self) -> List[TimeRange]:
        """구독이 유효했던 전체 구간 (active ∪ expiresoon)"""
        return merge_ranges(self.active + self.expiresoon)


@dataclass
class AudienceRanges:
    audiences: List[str]
    global_ranges: CategoryRanges
    product_ranges: Dict[str, CategoryRanges]
    product_status_map: Dict[str, str]

    def ranges_for(self, audience: str, product_id=None) -> List[TimeRange]:
        if product_id is None:
            return self.global_ranges.for_audience(audience)
        product = self.product_ranges.get(str(product_id))
        return product.for_audience(audience) if product else []


def _soon_start(start: datetime, end: datetime) -> datetime:
    # 10일보다 짧은 구독은 처음부터 전체가 expiresoon 구간
    return max(start, end - timedelta(days=EXPIRING_SOON_DAYS))


def _split_ranges(subscriptions: Iterable) -> tuple:
    active_raw, soon_raw, total_raw = [], [], []
    for sub in subscriptions:
        start, end = sub.start_date, sub.end_date
        soon_start = _soon_start(start, end)
        if start < soon_start:
            active_raw.append(TimeRange(start, soon_start))
        soon_raw.append(TimeRange(soon_start, end))
        total_raw.append(TimeRange(start, end))
    return active_raw, soon_raw, total_raw


def _category_ranges(subscriptions: List, now: datetime) -> CategoryRanges:
    active_raw, soon_raw, total_raw = _split_ranges(subscriptions)
    return CategoryRanges(
        active=merge_ranges(active_raw),
        expiresoon=merge_ranges(soon_raw),
        expired=complement_ranges(merge_ranges(total_raw), now),
    )


def effective_status(sub, now: datetime) -> str:
    """now 기준 구독의 실제 상태 (저장된 status와 무관하게 시간으로 판단)"""
    if sub.end_date < now:
        return STATUS_EXPIRED
    if now >= _soon_start(sub.start_date, sub.end_date):
        return STATUS_EXPIRESOON
    return STATUS_ACTIVE


def compute_audience_ranges(subscriptions: Iterable, now: datetime) -> AudienceRanges:
    """결제 완료된 구독 목록 → 전역/상품별 audience 구간"""
    subs = [s for s in subscriptions if s.start_date is not None and s.end_date is not None]

    by_product: Dict[str, List] = defaultdict(list)
    for sub in subs:
        if sub.product_id is not None:
            by_product[str(sub.product_id)].append(sub)

    global_ranges = _category_ranges(subs, now)
    product_ranges = {pid: _category_ranges(items, now) for pid, items in by_product.items()}

    product_status_map: Dict[str, str] = {}
    for pid, items in by_product.items():
        statuses = [effective_status(s, now) for s in items]
        product_status_map[pid] = max(statuses, key=lambda s: _STATUS_PRIORITY[s])

    audiences: List[str] = [AUDIENCE_ALL, AUDIENCE_GENERAL]
    present: Set[str] = set(product_status_map.values())
    for audience in STATE_AUDIENCES:
        has_range = bool(global_ranges.for_audience(audience)) or any(
            r.for_audience(audience) for r in product_ranges.values()
        )
        if has_range or audience in present:
            audiences.append(audience)

    return AudienceRanges(
        audiences=audiences,
        global_ranges=global_ranges,
        product_ranges=product_ranges,
        product_status_map=product_status_map,
    )


def is_broadcast_visible(notification, user_created_at: Optional[datetime], ranges: AudienceRanges) -> bool:
    """브로드캐스트 알림이 이 사용자에게 보이는지"""
    created_at = notification.created_at
    if created_at is None:
        return False
    # 가입 이전 브로드캐스트는 보여주지 않음
    if user_created_at is not None and created_at < user_created_at:
        return False

    audience = notification.target_audience or AUDIENCE_ALL
    product_id = notification.target_product_id

    if audience in (AUDIENCE_ALL, AUDIENCE_GENERAL):
        return True

    if audience in STATE_AUDIENCES:
        return ranges_contain(ranges.ranges_for(audience, product_id), created_at)

    if audience == AUDIENCE_PRODUCT_WISE:
        if product_id is None:
            return False
        product = ranges.product_ranges.get(str(product_id))
        return bool(product) and ranges_contain(product.coverage(), created_at)

    return False


def is_notification_visible(
    notification,
    user_id,
    user_created_at: Optional[datetime],
    ranges: AudienceRanges,
    hidden_ids: Optional[Set[str]] = None,
) -> bool:
    """개인 알림은 본인에게, 브로드캐스트는 audience 구간 기준으로 노출"""
    if hidden_ids and str(notification.id) in hidden_ids:
        return False
    if notification.is_broadcast:
        return is_broadcast_visible(notification, user_created_at, ranges)
    return notification.user_id is not None and str(notification.user_id) == str(user_id)
