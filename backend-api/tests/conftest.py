"""
Pytest Configuration and Shared Fixtures

- 테스트마다 새 in-memory SQLite (aiosqlite) DB
- FrozenClock 으로 시간 고정, 기록용 알림 sink, 로컬 구독 락
"""

import os

# app 설정 로딩 전에 테스트용 환경 지정
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("USE_REDIS_LOCKS", "false")
os.environ.setdefault("NOTIFICATION_PUBSUB_ENABLED", "false")

from datetime import datetime

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.clock import FrozenClock, get_clock
from app.core.database import Base, get_db
from app.core.locks import LocalSubscriptionLock
from app.dependencies import provide_lock, provide_sink
from app.models import Article, Product, ProductVariant, User
from app.services.subscription_notifier import SubscriptionNotifier
from app.services.subscription_service import SubscriptionService

from tests.utils import T0, RecordingSink


# ============================================================================
# DATABASE
# ============================================================================

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ============================================================================
# CLOCK / SINK / LOCK
# ============================================================================

@pytest.fixture
def clock():
    return FrozenClock(T0)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def lock():
    return LocalSubscriptionLock()


@pytest.fixture
def notifier(db, sink, clock, lock):
    return SubscriptionNotifier(db, sink=sink, clock=clock, lock=lock)


@pytest.fixture
def service(db, notifier, clock):
    return SubscriptionService(db, notifier=notifier, clock=clock)


# ============================================================================
# DATA FACTORIES
# ============================================================================

@pytest.fixture
def make_user(db, clock):
    counter = {"n": 0}

    async def _make(is_admin: bool = False, created_at: datetime = None) -> User:
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            username=f"user{counter['n']}",
            is_admin=is_admin,
            created_at=created_at or clock.now(),
        )
        db.add(user)
        await db.commit()
        return user

    return _make


@pytest.fixture
def make_product(db):
    async def _make(name: str = "Market Daily", variants=(("30 Days", 30, "days", 10000),)) -> Product:
        product = Product(name=name, short_description=f"{name} 구독")
        db.add(product)
        await db.flush()
        for i, (label, value, unit, price) in enumerate(variants):
            db.add(ProductVariant(
                product_id=product.id,
                duration=label,
                duration_value=value,
                duration_unit=unit,
                price=price,
                sort_order=i,
            ))
        await db.commit()
        return product

    return _make


@pytest.fixture
def make_article(db):
    async def _make(product: Product, created_at: datetime, title: str = None, is_active: bool = True) -> Article:
        article = Article(
            product_id=product.id,
            title=title or f"article {created_at.isoformat()}",
            is_active=is_active,
            created_at=created_at,
        )
        db.add(article)
        await db.commit()
        return article

    return _make


# ============================================================================
# HTTP CLIENT
# ============================================================================

@pytest.fixture
async def client(session_factory, sink, lock, clock):
    from app.main import app

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[provide_sink] = lambda: sink
    app.dependency_overrides[provide_lock] = lambda: lock
    app.dependency_overrides[get_clock] = lambda: clock

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

