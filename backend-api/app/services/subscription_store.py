"""
구독/알림 저장소: 코어 로직이 사용하는 좁은 load/save 인터페이스
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Article, Notification, Product, ProductVariant, Subscription


def _as_uuid(value) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


class SubscriptionStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Subscriptions ───────────────────────────────

    async def load_subscriptions(
        self,
        user_id=None,
        product_id=None,
        statuses: Optional[Sequence[str]] = None,
        payment_status: Optional[str] = "completed",
        chain_id: Optional[str] = None,
        ended_before: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Subscription]:
        stmt = select(Subscription)
        if user_id is not None:
            stmt = stmt.where(Subscription.user_id == _as_uuid(user_id))
        if product_id is not None:
            stmt = stmt.where(Subscription.product_id == _as_uuid(product_id))
        if statuses:
            stmt = stmt.where(Subscription.status.in_(list(statuses)))
        if payment_status is not None:
            stmt = stmt.where(Subscription.payment_status == payment_status)
        if chain_id is not None:
            stmt = stmt.where(Subscription.contiguous_chain_id == chain_id)
        if ended_before is not None:
            stmt = stmt.where(Subscription.end_date < ended_before)
        stmt = stmt.order_by(Subscription.start_date.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        res = await self.db.execute(stmt)
        return list(res.scalars().unique().all())

    async def get_subscription(self, subscription_id) -> Optional[Subscription]:
        return await self.db.get(Subscription, _as_uuid(subscription_id))

    async def latest_subscription(self, user_id, product_id) -> Optional[Subscription]:
        """해당 (user, product)의 가장 늦게 끝나는 결제 완료 구독"""
        stmt = (
            select(Subscription)
            .where(
                Subscription.user_id == _as_uuid(user_id),
                Subscription.product_id == _as_uuid(product_id),
                Subscription.payment_status == "completed",
            )
            .order_by(Subscription.end_date.desc())
            .limit(1)
        )
        res = await self.db.execute(stmt)
        return res.scalars().first()

    async def current_access_subscription(self, user_id, product_id, now: datetime) -> Optional[Subscription]:
        """지금 열람 권한을 주는 구독 (시작됐고 아직 끝나지 않은 것 중 가장 늦게 끝나는 것)"""
        stmt = (
            select(Subscription)
            .where(
                Subscription.user_id == _as_uuid(user_id),
                Subscription.product_id == _as_uuid(product_id),
                Subscription.payment_status == "completed",
                Subscription.status.in_(["active", "expiresoon"]),
                Subscription.start_date <= now,
                Subscription.end_date > now,
            )
            .order_by(Subscription.end_date.desc())
            .limit(1)
        )
        res = await self.db.execute(stmt)
        return res.scalars().first()

    async def save(self, subscription: Subscription, commit: bool = True) -> Subscription:
        self.db.add(subscription)
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()
        return subscription

    async def clear_latest_flag(self, user_id, product_id) -> None:
        """(user, product)당 is_latest=True는 하나만 유지"""
        stmt = update(Subscription).where(
            Subscription.user_id == _as_uuid(user_id),
            Subscription.product_id == _as_uuid(product_id),
            Subscription.is_latest == True,  # noqa: E712
        )
        await self.db.execute(stmt.values(is_latest=False).execution_options(synchronize_session="fetch"))

    async def count_by_status(self) -> dict:
        stmt = (
            select(Subscription.status, func.count(Subscription.id), func.sum(Subscription.price))
            .where(Subscription.payment_status == "completed")
            .group_by(Subscription.status)
        )
        res = await self.db.execute(stmt)
        return {row[0]: {"count": row[1], "total_value": row[2] or 0} for row in res.all()}

    # ── Products / Articles ─────────────────────────

    async def get_product(self, product_id) -> Optional[Product]:
        try:
            return await self.db.get(Product, _as_uuid(product_id))
        except (ValueError, TypeError):
            return None

    async def get_variant(self, product_id, variant_id) -> Optional[ProductVariant]:
        try:
            pid, vid = _as_uuid(product_id), _as_uuid(variant_id)
        except (ValueError, TypeError):
            return None
        res = await self.db.execute(
            select(ProductVariant).where(ProductVariant.id == vid, ProductVariant.product_id == pid)
        )
        return res.scalars().first()

    async def load_product_articles(self, product_id) -> List[Article]:
        try:
            pid = _as_uuid(product_id)
        except (ValueError, TypeError):
            return []
        res = await self.db.execute(select(Article).where(Article.product_id == pid))
        return list(res.scalars().all())

    # ── Notifications ───────────────────────────────

    async def insert_notification(self, notification: Notification, commit: bool = True) -> Notification:
        self.db.add(notification)
        if commit:
            await self.db.commit()
            await self.db.refresh(notification)
        else:
            await self.db.flush()
        return notification

    async def find_notification(
        self,
        subscription_id=None,
        notification_type: Optional[str] = None,
        user_id=None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> Optional[Notification]:
        stmt = select(Notification)
        if subscription_id is not None:
            stmt = stmt.where(Notification.subscription_id == _as_uuid(subscription_id))
        if notification_type is not None:
            stmt = stmt.where(Notification.notification_type == notification_type)
        if user_id is not None:
            stmt = stmt.where(Notification.user_id == _as_uuid(user_id))
        if created_from is not None:
            stmt = stmt.where(Notification.created_at >= created_from)
        if created_to is not None:
            stmt = stmt.where(Notification.created_at <= created_to)
        res = await self.db.execute(stmt.order_by(Notification.created_at.desc()).limit(1))
        return res.scalars().first()
