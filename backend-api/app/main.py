"""
콘텐츠 구독 서비스 - FastAPI 메인 애플리케이션
구독 열람 권한 계산 + 구독 상태/브로드캐스트 알림
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from pathlib import Path
import logging

from app.core.config import settings
from app.core.database import engine, Base, check_db_connection, check_redis_connection

from app.api.subscription import router as subscriptions_router
from app.api.products import router as products_router
from app.api.notifications import router as notifications_router
from app.api.admin_notifications import router as admin_notifications_router

# 로깅 설정
logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(database_url: str) -> None:
    """sqlite 파일 DB의 상위 디렉터리 생성"""
    if not database_url.startswith("sqlite") or ":memory:" in database_url:
        return
    path = database_url.split(":///", 1)[-1]
    if path:
        Path(path).parent.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 시작/종료 시 실행되는 이벤트"""
    logger.info("🚀 콘텐츠 구독 서비스 시작")

    # 데이터베이스 테이블 생성 (개발용)
    if settings.ENVIRONMENT == "development":
        _ensure_sqlite_dir(settings.DATABASE_URL)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("📊 데이터베이스 테이블 생성 완료")

    yield

    await engine.dispose()
    logger.info("👋 콘텐츠 구독 서비스 종료")


# FastAPI 앱 생성
app = FastAPI(
    title="콘텐츠 구독 서비스 API",
    description="구독 기간/연속 갱신 기반 기사 열람 권한과 구독 상태 알림",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT == "development" else None,
    lifespan=lifespan
)

# CORS: 개발 환경에선 프론트 도메인을 명시적으로 허용
ALLOWED_ORIGINS = [settings.FRONTEND_BASE_URL]
if settings.ENVIRONMENT == "development":
    ALLOWED_ORIGINS += ["http://localhost:5173", "http://127.0.0.1:5173"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted(set(ALLOWED_ORIGINS)),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 라우터 등록
app.include_router(subscriptions_router, prefix="/subscriptions", tags=["구독"])
app.include_router(products_router, prefix="/products", tags=["상품 기사"])
app.include_router(notifications_router, prefix="/notifications", tags=["알림"])
app.include_router(admin_notifications_router, prefix="/admin/notifications", tags=["관리자 알림"])


@app.get("/health")
async def health_check():
    """헬스 체크 엔드포인트"""
    db_ok = await check_db_connection()
    redis_ok = await check_redis_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "environment": settings.ENVIRONMENT,
        "database": "connected" if db_ok else "unavailable",
        "redis": "connected" if redis_ok else "unavailable",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True if settings.ENVIRONMENT == "development" else False
    )
