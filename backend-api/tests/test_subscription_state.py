"""
구독 상태 머신 테스트
"""

from datetime import datetime, timedelta

import pytest

from app.services.subscription_state import (
    STATUS_ACTIVE,
    STATUS_EXPIRED,
    STATUS_EXPIRESOON,
    compute_status,
    days_remaining,
    evaluate_transition,
    initial_status,
    is_expiring_soon,
)

T = datetime(2025, 1, 1, 9, 0)
END_30D = T + timedelta(days=30)


class TestComputeStatus:
    def test_thirty_day_subscription_lifecycle(self):
        assert compute_status(T, END_30D, "days") == STATUS_ACTIVE
        assert compute_status(T + timedelta(days=19), END_30D, "days") == STATUS_ACTIVE
        # 정확히 10일 남음
        assert compute_status(T + timedelta(days=20), END_30D, "days") == STATUS_EXPIRESOON
        assert compute_status(T + timedelta(days=21), END_30D, "days") == STATUS_EXPIRESOON
        assert compute_status(END_30D, END_30D, "days") == STATUS_EXPIRESOON
        assert compute_status(END_30D + timedelta(seconds=1), END_30D, "days") == STATUS_EXPIRED

    @pytest.mark.parametrize("unit,threshold", [
        ("minutes", timedelta(minutes=5)),
        ("hours", timedelta(hours=2)),
        ("weeks", timedelta(days=10)),
        ("months", timedelta(days=10)),
    ])
    def test_threshold_per_unit(self, unit, threshold):
        end = T + timedelta(days=60)
        assert is_expiring_soon(end - threshold, end, unit)
        assert not is_expiring_soon(end - threshold - timedelta(seconds=1), end, unit)

    def test_idempotent(self):
        for offset in (0, 5, 20, 29.5, 31):
            now = T + timedelta(days=offset)
            once = compute_status(now, END_30D, "days")
            assert compute_status(now, END_30D, "days", once) == once

    def test_expired_is_terminal(self):
        # end_date가 뒤로 밀려도 expired는 유지
        assert compute_status(T, END_30D, "days", STATUS_EXPIRED) == STATUS_EXPIRED

    def test_expiresoon_does_not_regress_under_normal_operation(self):
        # 10일 이내 → active 로 돌아가지 않음
        assert compute_status(T + timedelta(days=25), END_30D, "days", STATUS_EXPIRESOON) == STATUS_EXPIRESOON
        # 데이터 보정: 남은 기간이 10일 초과면 active 복구
        assert compute_status(T, END_30D, "days", STATUS_EXPIRESOON) == STATUS_ACTIVE

    def test_days_remaining_rounds_up(self):
        assert days_remaining(T + timedelta(days=21), END_30D) == 9
        assert days_remaining(T + timedelta(days=20, hours=1), END_30D) == 10
        assert days_remaining(END_30D + timedelta(days=1), END_30D) == 0


class TestEvaluateTransition:
    def test_entering_expiresoon_on_d10_notifies(self):
        t = evaluate_transition(T + timedelta(days=20), END_30D, "days", STATUS_ACTIVE)
        assert t.changed
        assert t.new_status == STATUS_EXPIRESOON
        assert t.should_notify
        assert t.days_remaining == 10
        assert t.notification_type == "subscription_expiring_soon"

    def test_late_entry_into_expiresoon_is_silent_for_day_units(self):
        t = evaluate_transition(T + timedelta(days=21), END_30D, "days", STATUS_ACTIVE)
        assert t.changed
        assert t.new_status == STATUS_EXPIRESOON
        assert t.days_remaining == 9
        assert not t.should_notify

    def test_entering_expiresoon_always_notifies_for_short_units(self):
        end = T + timedelta(minutes=30)
        t = evaluate_transition(end - timedelta(minutes=4), end, "minutes", STATUS_ACTIVE)
        assert t.new_status == STATUS_EXPIRESOON
        assert t.should_notify

    def test_expiring_notifies(self):
        t = evaluate_transition(END_30D + timedelta(seconds=1), END_30D, "days", STATUS_EXPIRESOON)
        assert t.new_status == STATUS_EXPIRED
        assert t.should_notify
        assert t.notification_type == "subscription_expired"

    def test_reminders_only_on_reminder_days(self):
        at_d10 = evaluate_transition(T + timedelta(days=20), END_30D, "days", STATUS_EXPIRESOON)
        at_d5 = evaluate_transition(T + timedelta(days=25), END_30D, "days", STATUS_EXPIRESOON)
        at_d3 = evaluate_transition(T + timedelta(days=27), END_30D, "days", STATUS_EXPIRESOON)
        assert at_d10.should_notify and at_d10.is_reminder
        assert not at_d5.should_notify
        assert at_d3.should_notify and at_d3.is_reminder

    def test_no_reminders_for_short_units(self):
        end = T + timedelta(minutes=30)
        t = evaluate_transition(end - timedelta(minutes=3), end, "minutes", STATUS_EXPIRESOON)
        assert not t.should_notify

    def test_unchanged_active_is_quiet(self):
        t = evaluate_transition(T + timedelta(days=1), END_30D, "days", STATUS_ACTIVE)
        assert not t.changed
        assert not t.should_notify

    def test_initial_status_for_short_product(self):
        assert initial_status(T, END_30D, "days").new_status == STATUS_ACTIVE
        short = initial_status(T, T + timedelta(minutes=3), "minutes")
        assert short.new_status == STATUS_EXPIRESOON
        assert short.should_notify
