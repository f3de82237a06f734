"""
구독 구매/갱신 & 기사 열람 조회
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.models import Subscription
from app.services.article_access import AccessibleArticle, accessible_articles, can_access_article
from app.services.entitlement_service import (
    CoveragePlan,
    plan_first_purchase,
    plan_renewal,
    resolve_effective_start_date,
)
from app.services.subscription_notifier import SubscriptionNotifier
from app.services.subscription_state import initial_status
from app.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)


class SubscriptionError(Exception):
    """구매/갱신 요청 오류 (API에서 4xx로 변환)"""
    status_code = 400


class ProductNotFound(SubscriptionError):
    status_code = 404


class VariantNotFound(SubscriptionError):
    status_code = 404


class NothingToRenew(SubscriptionError):
    status_code = 404


class SubscriptionService:
    def __init__(self, db: AsyncSession, notifier: Optional[SubscriptionNotifier] = None, clock: Optional[Clock] = None):
        self.db = db
        self.store = SubscriptionStore(db)
        self.clock = clock or system_clock
        self.notifier = notifier or SubscriptionNotifier(db, clock=self.clock)

    async def _resolve_variant(self, product_id, variant_id):
        product = await self.store.get_product(product_id)
        if product is None or not product.is_active:
            raise ProductNotFound("존재하지 않는 상품입니다.")
        variant = await self.store.get_variant(product.id, variant_id)
        if variant is None:
            raise VariantNotFound("존재하지 않는 구독 기간 옵션입니다.")
        return product, variant

    async def chain_effective_start(self, subscription: Subscription) -> datetime:
        chain = []
        if subscription.contiguous_chain_id:
            chain = await self.store.load_subscriptions(
                user_id=subscription.user_id,
                product_id=subscription.product_id,
                chain_id=subscription.contiguous_chain_id,
            )
        return resolve_effective_start_date(subscription, chain)

    async def _create(self, user_id, product, variant, plan: CoveragePlan, now: datetime,
                      previous: Optional[Subscription], payment_id: Optional[str]) -> Subscription:
        status = initial_status(now, plan.end_date, variant.duration_unit)

        await self.store.clear_latest_flag(user_id, product.id)
        subscription = Subscription(
            user_id=user_id,
            product_id=product.id,
            duration=variant.duration,
            duration_value=variant.duration_value,
            duration_unit=variant.duration_unit,
            price=variant.price,
            status=status.new_status,
            payment_status="completed",
            payment_id=payment_id,
            start_date=plan.start_date,
            end_date=plan.end_date,
            original_start_date=plan.effective_start_date,
            contiguous_chain_id=plan.contiguous_chain_id,
            is_latest=True,
            is_renewal=previous is not None,
            renewal_type=plan.renewal_type,
            replaced_subscription_id=previous.id if previous is not None else None,
            last_status_check=now,
            created_at=now,
            extra={"gap_days": plan.gap_days},
        )
        try:
            await self.store.save(subscription)
            await self.db.refresh(subscription)
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"[subscriptions] {plan.renewal_type} subscription {subscription.id} "
            f"user={user_id} product={product.id} {plan.start_date.isoformat()} ~ {plan.end_date.isoformat()}"
        )
        await self.notifier.notify_new_subscription(subscription)
        return subscription

    async def purchase(self, user_id, product_id, variant_id, payment_id: Optional[str] = None) -> Subscription:
        """구매. 같은 상품의 이전 구독이 있으면 갱신 규칙(연속/유예/신규)을 따른다."""
        product, variant = await self._resolve_variant(product_id, variant_id)
        existing = await self.store.latest_subscription(user_id, product.id)
        if existing is not None:
            return await self._renew_from(existing, product, variant, payment_id)

        now = self.clock.now()
        plan = plan_first_purchase(now, user_id, product.id, variant.duration_value, variant.duration_unit)
        return await self._create(user_id, product, variant, plan, now, None, payment_id)

    async def renew(self, user_id, product_id, variant_id, payment_id: Optional[str] = None) -> Subscription:
        product, variant = await self._resolve_variant(product_id, variant_id)
        existing = await self.store.latest_subscription(user_id, product.id)
        if existing is None:
            raise NothingToRenew("갱신할 구독이 없습니다.")
        return await self._renew_from(existing, product, variant, payment_id)

    async def _renew_from(self, existing: Subscription, product, variant, payment_id: Optional[str]) -> Subscription:
        now = self.clock.now()
        effective_start = await self.chain_effective_start(existing)
        plan = plan_renewal(now, existing, variant.duration_value, variant.duration_unit, effective_start)
        return await self._create(existing.user_id, product, variant, plan, now, existing, payment_id)

    # ── 기사 열람 ────────────────────────────────────

    async def accessible_articles_for(self, user_id, product_id) -> Tuple[Optional[Subscription], List[AccessibleArticle]]:
        """현재 열람 권한을 주는 구독과 열람 가능한 기사 목록 (권한 없으면 (None, []))"""
        subscription = await self.store.current_access_subscription(user_id, product_id, self.clock.now())
        if subscription is None:
            return None, []
        effective_start = await self.chain_effective_start(subscription)
        articles = await self.store.load_product_articles(product_id)
        return subscription, accessible_articles(articles, effective_start, subscription.historical_article_limit)

    async def can_read_article(self, user_id, product_id, article_id) -> bool:
        subscription = await self.store.current_access_subscription(user_id, product_id, self.clock.now())
        if subscription is None:
            return False
        effective_start = await self.chain_effective_start(subscription)
        articles = await self.store.load_product_articles(product_id)
        return can_access_article(articles, article_id, effective_start, subscription.historical_article_limit)
