"""
상품(구독 콘텐츠) 모델: 상품, 기간 옵션(variant), 기사
"""

from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship
import uuid

from app.core.clock import utcnow
from app.core.database import Base, UUID


DURATION_UNITS = ("minutes", "hours", "days", "weeks", "months", "years")


class Product(Base):
    """구독 상품"""
    __tablename__ = "products"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(200), nullable=False)
    short_description = Column(Text)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan")
    articles = relationship("Article", back_populates="product", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name})>"


class ProductVariant(Base):
    """구독 기간 옵션 (예: '1 Month' = 1 months)"""
    __tablename__ = "product_variants"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    product_id = Column(UUID(), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    duration = Column(String(50), nullable=False)  # 표시용 라벨
    duration_value = Column(Integer, nullable=False)
    duration_unit = Column(String(10), nullable=False)  # minutes, hours, days, weeks, months, years
    price = Column(Integer, nullable=False, default=0)
    sort_order = Column(Integer, default=0)

    __table_args__ = (
        CheckConstraint('duration_value >= 1', name='check_duration_value_positive'),
        CheckConstraint('price >= 0', name='check_variant_price_positive'),
    )

    product = relationship("Product", back_populates="variants")


class Article(Base):
    """상품에 속한 기사 (is_active, created_at만 열람 권한 계산에 사용)"""
    __tablename__ = "articles"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    product_id = Column(UUID(), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(300), nullable=False)
    summary = Column(Text)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    product = relationship("Product", back_populates="articles")

    def __repr__(self) -> str:
        return f"<Article(id={self.id}, product={self.product_id}, created_at={self.created_at})>"
