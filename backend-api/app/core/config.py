"""
애플리케이션 설정
"""

from pydantic_settings import BaseSettings
from pathlib import Path
from dotenv import load_dotenv


"""env 로딩 우선순위
1) OS 환경변수
2) 프로젝트 루트의 .env (repo/.env)
3) backend-api 디렉터리의 .env (repo/backend-api/.env)
"""

# .env 사전 로드 (OS 환경변수 우선, override=False)
_here = Path(__file__).resolve()
_repo_root_env = _here.parents[3] / ".env"  # repo/.env
_backend_env = _here.parents[2] / ".env"    # backend-api/.env
for _p in (_repo_root_env, _backend_env):
    if _p.exists():
        load_dotenv(dotenv_path=str(_p), override=False)


_DEFAULT_JWT_SECRET = "your-super-secret-jwt-key-change-this-in-production"


class Settings(BaseSettings):
    """애플리케이션 설정"""
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    DATABASE_URL: str = "sqlite+aiosqlite:///./data/subscriptions.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    # JWT (토큰 발급은 외부 인증 서비스 담당, 여기서는 검증만)
    JWT_SECRET_KEY: str = _DEFAULT_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # 구독 상태 점검 주기 (celery beat)
    SUBSCRIPTION_CHECK_INTERVAL_SECONDS: int = 30
    # 여러 프로세스(웹 + celery)가 같은 구독을 점검할 때 Redis 락 사용 여부
    USE_REDIS_LOCKS: bool = True
    # 실시간 알림 발행 (Redis pub/sub)
    NOTIFICATION_PUBSUB_ENABLED: bool = True

    FRONTEND_BASE_URL: str = "http://localhost:5173"

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = 'ignore'

settings = Settings()


# 환경별 설정 검증
def validate_settings():
    """설정 검증"""
    if settings.ENVIRONMENT == "production":
        if settings.JWT_SECRET_KEY == _DEFAULT_JWT_SECRET:
            raise ValueError("프로덕션 환경에서는 JWT_SECRET_KEY를 변경해야 합니다.")
        if settings.DATABASE_URL.startswith("sqlite"):
            raise ValueError("프로덕션 환경에서는 SQLite를 사용할 수 없습니다.")

    return True


# 설정 검증 실행
validate_settings()
