"""
알림 조회/읽음/숨김 & 브로드캐스트 테스트
"""

from datetime import timedelta

import pytest

from app.services import notification_service
from app.services.notification_service import InvalidBroadcast

from tests.utils import T0, first_variant


async def subscribe(service, db, user, product):
    variant = await first_variant(db, product)
    return await service.purchase(user.id, product.id, variant.id)


class TestListing:
    async def test_personal_and_broadcast_mix(self, db, service, clock, make_user, make_product):
        user = await make_user()
        other = await make_user()
        product = await make_product()
        await subscribe(service, db, user, product)
        await subscribe(service, db, other, product)

        clock.advance(hours=1)
        await notification_service.create_broadcast(db, "공지", "전체 공지", clock=clock)

        data = await notification_service.list_user_notifications(db, user, clock=clock)
        assert data["total"] == 2
        assert data["unread_count"] == 2
        types = [item["notification"].notification_type for item in data["notifications"]]
        assert types == ["general", "subscription_active"]

    async def test_expiresoon_broadcast_targets_by_time(self, db, service, clock, make_user, make_product):
        early = await make_user()
        late = await make_user()
        product = await make_product()
        await subscribe(service, db, early, product)

        clock.set(T0 + timedelta(days=22))
        broadcast = await notification_service.create_broadcast(
            db, "곧 만료", "갱신하세요", target_audience="expiresoon", clock=clock
        )

        clock.set(T0 + timedelta(days=25))
        await subscribe(service, db, late, product)

        early_ids = {i["notification"].id for i in (await notification_service.list_user_notifications(db, early, clock=clock))["notifications"]}
        late_ids = {i["notification"].id for i in (await notification_service.list_user_notifications(db, late, clock=clock))["notifications"]}
        assert broadcast.id in early_ids
        assert broadcast.id not in late_ids

        # 나중에 만료돼도 당시 받은 알림은 유지
        clock.set(T0 + timedelta(days=45))
        early_ids = {i["notification"].id for i in (await notification_service.list_user_notifications(db, early, clock=clock))["notifications"]}
        assert broadcast.id in early_ids

    async def test_pagination_and_type_filter(self, db, clock, make_user):
        user = await make_user()
        for i in range(5):
            clock.advance(minutes=1)
            await notification_service.create_broadcast(db, f"공지 {i}", "내용", clock=clock)

        page = await notification_service.list_user_notifications(db, user, page=2, limit=2, clock=clock)
        assert page["total"] == 5
        assert len(page["notifications"]) == 2
        assert page["has_more"]

        filtered = await notification_service.list_user_notifications(db, user, types=["subscription_expired"], clock=clock)
        assert filtered["total"] == 0


class TestReadAndHide:
    async def test_broadcast_read_is_per_user(self, db, clock, make_user):
        alice = await make_user()
        bob = await make_user()
        clock.advance(minutes=1)
        n = await notification_service.create_broadcast(db, "공지", "내용", clock=clock)

        assert await notification_service.mark_as_read(db, alice, n.id, clock)
        alice_data = await notification_service.list_user_notifications(db, alice, clock=clock)
        bob_data = await notification_service.list_user_notifications(db, bob, clock=clock)
        assert alice_data["unread_count"] == 0
        assert bob_data["unread_count"] == 1
        # 원본은 읽음 처리하지 않음
        await db.refresh(n)
        assert n.is_read is False

    async def test_mark_all_and_hide(self, db, service, clock, make_user, make_product):
        user = await make_user()
        product = await make_product()
        await subscribe(service, db, user, product)
        clock.advance(minutes=1)
        n = await notification_service.create_broadcast(db, "공지", "내용", clock=clock)

        assert await notification_service.mark_all_as_read(db, user, clock) == 2
        assert (await notification_service.list_user_notifications(db, user, unread_only=True, clock=clock))["total"] == 0

        assert await notification_service.hide_for_user(db, user, n.id, clock)
        assert (await notification_service.list_user_notifications(db, user, clock=clock))["total"] == 1
        assert await notification_service.hide_all_for_user(db, user, clock) == 1
        assert (await notification_service.list_user_notifications(db, user, clock=clock))["total"] == 0

    async def test_cannot_touch_other_users_notifications(self, db, service, clock, make_user, make_product):
        alice = await make_user()
        bob = await make_user()
        product = await make_product()
        sub = await subscribe(service, db, alice, product)
        data = await notification_service.list_user_notifications(db, alice, clock=clock)
        personal_id = data["notifications"][0]["notification"].id

        assert not await notification_service.mark_as_read(db, bob, personal_id, clock)
        assert not await notification_service.hide_for_user(db, bob, personal_id, clock)
        assert not await notification_service.mark_as_read(db, bob, "not-a-uuid", clock)
        assert sub is not None


class TestCreateBroadcast:
    async def test_validation(self, db, clock, make_product):
        with pytest.raises(InvalidBroadcast):
            await notification_service.create_broadcast(db, "t", "m", target_audience="vip", clock=clock)
        with pytest.raises(InvalidBroadcast):
            await notification_service.create_broadcast(db, "t", "m", target_audience="product_wise", clock=clock)

        product = await make_product()
        n = await notification_service.create_broadcast(
            db, "t", "m", target_audience="product_wise", target_product_id=product.id, clock=clock
        )
        assert n.target_product_id == product.id
        assert n.created_at == clock.now()

    async def test_publishes_to_sink(self, db, clock, sink):
        await notification_service.create_broadcast(db, "t", "m", clock=clock, sink=sink)
        assert sink.events[0][0] == "broadcast"
        assert sink.events[0][1]["event"] == "broadcast_notification"
