"""
구매/갱신 흐름 & 기사 열람 (DB) 테스트
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from app.models import Subscription
from app.services.subscription_service import NothingToRenew, ProductNotFound, VariantNotFound

from tests.utils import T0, first_variant


async def latest_flags(db, user, product):
    res = await db.execute(
        select(Subscription.id, Subscription.is_latest)
        .where(Subscription.user_id == user.id, Subscription.product_id == product.id)
    )
    return {row[0]: row[1] for row in res.all()}


class TestPurchaseAndRenew:
    async def test_contiguous_renewal_before_expiry(self, db, service, clock, make_user, make_product):
        user = await make_user()
        product = await make_product()
        variant = await first_variant(db, product)
        first = await service.purchase(user.id, product.id, variant.id)

        clock.set(T0 + timedelta(days=29))
        renewed = await service.renew(user.id, product.id, variant.id)

        assert renewed.renewal_type == "contiguous"
        assert renewed.start_date == T0 + timedelta(days=30)
        assert renewed.end_date == T0 + timedelta(days=60)
        assert renewed.contiguous_chain_id == first.contiguous_chain_id
        assert renewed.original_start_date == T0
        assert renewed.replaced_subscription_id == first.id
        assert await service.chain_effective_start(renewed) == T0

        flags = await latest_flags(db, user, product)
        assert flags == {first.id: False, renewed.id: True}

    async def test_renewal_after_grace_period_resets_chain(self, db, service, clock, make_user, make_product):
        user = await make_user()
        product = await make_product()
        variant = await first_variant(db, product)
        first = await service.purchase(user.id, product.id, variant.id)

        clock.set(T0 + timedelta(days=40))
        renewed = await service.renew(user.id, product.id, variant.id)

        assert renewed.renewal_type == "fresh"
        assert renewed.start_date == T0 + timedelta(days=40)
        assert renewed.contiguous_chain_id != first.contiguous_chain_id
        assert await service.chain_effective_start(renewed) == T0 + timedelta(days=40)

    async def test_purchase_with_history_follows_renewal_rules(self, db, service, clock, make_user, make_product):
        user = await make_user()
        product = await make_product()
        variant = await first_variant(db, product)
        first = await service.purchase(user.id, product.id, variant.id)

        clock.set(T0 + timedelta(days=33))
        again = await service.purchase(user.id, product.id, variant.id)
        assert again.renewal_type == "grace_period"
        assert again.contiguous_chain_id == first.contiguous_chain_id

    async def test_errors(self, db, service, make_user, make_product):
        user = await make_user()
        product = await make_product()
        variant = await first_variant(db, product)
        other = await make_product(name="Other")

        with pytest.raises(NothingToRenew):
            await service.renew(user.id, product.id, variant.id)
        with pytest.raises(VariantNotFound):
            await service.purchase(user.id, other.id, variant.id)
        with pytest.raises(ProductNotFound):
            await service.purchase(user.id, user.id, variant.id)


class TestArticleAccess:
    async def test_recent_historical_and_future_articles(self, db, service, clock, make_user, make_product, make_article):
        user = await make_user()
        product = await make_product()
        variant = await first_variant(db, product)
        historical = [await make_article(product, T0 - timedelta(days=i)) for i in range(1, 9)]

        await service.purchase(user.id, product.id, variant.id)
        future = [await make_article(product, T0 + timedelta(days=i)) for i in range(1, 3)]

        clock.set(T0 + timedelta(days=5))
        subscription, items = await service.accessible_articles_for(user.id, product.id)
        assert subscription is not None

        ids = {item.id for item in items}
        assert ids == {a.id for a in historical[:5]} | {a.id for a in future}

        for a in historical[5:]:
            assert not await service.can_read_article(user.id, product.id, a.id)
        assert await service.can_read_article(user.id, product.id, historical[0].id)

    async def test_grace_renewal_keeps_history_fresh_renewal_resets(self, db, service, clock, make_user, make_product, make_article):
        user = await make_user()
        product = await make_product()
        variant = await first_variant(db, product)
        old = await make_article(product, T0 - timedelta(days=1))
        await service.purchase(user.id, product.id, variant.id)

        # 유예 기간 내 갱신: 과거 기사 유지
        clock.set(T0 + timedelta(days=33))
        await service.renew(user.id, product.id, variant.id)
        assert await service.can_read_article(user.id, product.id, old.id)

        # 만료 후 유예 초과 → 새 체인: 구독 전 기사 중 최신 5개만
        for i in range(1, 7):
            await make_article(product, T0 + timedelta(days=70 + i))
        clock.set(T0 + timedelta(days=63 + 30))
        await service.renew(user.id, product.id, variant.id)
        assert not await service.can_read_article(user.id, product.id, old.id)

    async def test_no_subscription_no_access(self, db, service, make_user, make_product, make_article):
        user = await make_user()
        product = await make_product()
        article = await make_article(product, T0 - timedelta(days=1))
        assert await service.accessible_articles_for(user.id, product.id) == (None, [])
        assert not await service.can_read_article(user.id, product.id, article.id)
