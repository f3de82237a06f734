"""
알림 모델

- 개인 알림: user_id 지정, is_broadcast=False, is_read로 읽음 관리
- 브로드캐스트: is_broadcast=True, target_audience(+target_product_id) 대상,
  사용자별 읽음/숨김은 별도 테이블로 관리
"""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Integer, UniqueConstraint, Index
import uuid

from app.core.clock import utcnow
from app.core.database import Base, UUID, JSON


AUDIENCE_ALL = "all"
AUDIENCE_GENERAL = "general"
AUDIENCE_ACTIVE = "active"
AUDIENCE_EXPIRESOON = "expiresoon"
AUDIENCE_EXPIRED = "expired"
AUDIENCE_PRODUCT_WISE = "product_wise"

TARGET_AUDIENCES = (
    AUDIENCE_ALL,
    AUDIENCE_GENERAL,
    AUDIENCE_ACTIVE,
    AUDIENCE_EXPIRESOON,
    AUDIENCE_EXPIRED,
    AUDIENCE_PRODUCT_WISE,
)

TRIGGERED_BY_VALUES = ("system", "admin", "payment", "cron", "auto_check", "manual_check")


class Notification(Base):
    """알림 모델"""
    __tablename__ = "notifications"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    title = Column(String(200), nullable=False)
    message = Column(String(1000), nullable=False)

    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    subscription_id = Column(UUID(), ForeignKey("subscriptions.id", ondelete="SET NULL"), index=True)
    sent_by = Column(UUID(), ForeignKey("users.id"))
    notification_type = Column(String(50), nullable=False, default="general", index=True)

    is_broadcast = Column(Boolean, nullable=False, default=False)
    target_audience = Column(String(20), default=AUDIENCE_ALL, index=True)
    target_product_id = Column(UUID(), ForeignKey("products.id"), index=True)

    is_read = Column(Boolean, nullable=False, default=False)
    extra = Column(JSON, default=dict)  # old_status, new_status, triggered_by, subscription_details ...

    # 시간 범위 매칭 기준 시각 (생성 후 변경 금지)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_notifications_subscription_type_created", "subscription_id", "notification_type", "created_at"),
        Index("ix_notifications_broadcast_created", "is_broadcast", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type={self.notification_type}, broadcast={self.is_broadcast})>"


class NotificationRead(Base):
    """브로드캐스트 사용자별 읽음 기록"""
    __tablename__ = "notification_reads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    notification_id = Column(UUID(), ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    read_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_notification_read_user"),
    )


class NotificationHide(Base):
    """사용자별 알림 숨김(소프트 삭제)"""
    __tablename__ = "notification_hides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    notification_id = Column(UUID(), ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    hidden_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_notification_hide_user"),
    )
