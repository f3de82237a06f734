"""
구독 모델: (user, product) 한 쌍의 구매 기간 하나
"""

from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
import uuid

from app.core.clock import utcnow
from app.core.database import Base, UUID, JSON


DEFAULT_HISTORICAL_ARTICLE_LIMIT = 5


class Subscription(Base):
    """사용자 구독 (삭제하지 않음: 열람 권한 계산용 이력)"""
    __tablename__ = "subscriptions"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(UUID(), ForeignKey("products.id"), nullable=False, index=True)

    # 구매 시점 variant 스냅샷
    duration = Column(String(50), nullable=False)
    duration_value = Column(Integer, nullable=False)
    duration_unit = Column(String(10), nullable=False)
    price = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default="active")  # active, expiresoon, expired
    payment_status = Column(String(20), nullable=False, default="pending")  # pending, completed, failed, refunded
    payment_id = Column(String(200))

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    original_start_date = Column(DateTime)  # 체인 최초 구매일
    contiguous_chain_id = Column(String(200), index=True)
    historical_article_limit = Column(Integer, nullable=False, default=DEFAULT_HISTORICAL_ARTICLE_LIMIT)

    is_latest = Column(Boolean, nullable=False, default=True)
    is_renewal = Column(Boolean, nullable=False, default=False)
    renewal_type = Column(String(20))  # contiguous, grace_period, fresh
    replaced_subscription_id = Column(UUID(), ForeignKey("subscriptions.id"))

    last_status_check = Column(DateTime, default=utcnow)
    extra = Column(JSON, default=dict)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_subscriptions_user_status_end", "user_id", "status", "end_date"),
        Index("ix_subscriptions_user_product_latest", "user_id", "product_id", "is_latest"),
    )

    # Relationships
    user = relationship("User", back_populates="subscriptions")
    product = relationship("Product", lazy="joined")

    def __repr__(self):
        return f"<Subscription(id={self.id}, user={self.user_id}, product={self.product_id}, status={self.status})>"
