"""
사용자 모델
"""

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
import uuid

from app.core.clock import utcnow
from app.core.database import Base, UUID


class User(Base):
    """사용자 모델 (인증/프로필은 외부 서비스가 관리, 여기서는 참조용 최소 필드)"""
    __tablename__ = "users"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(50), unique=True, index=True, nullable=False)
    is_active = Column(Boolean, default=True)
    is_admin = Column(Boolean, default=False)

    # 가입 시각 이전에 생성된 브로드캐스트는 보여주지 않는다
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # 관계 설정
    subscriptions = relationship("Subscription", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, username={self.username})>"
