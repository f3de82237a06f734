"""
Celery 백그라운드 작업 설정

worker + beat 로 구독 상태 주기 점검을 실행한다.
    celery -A app.core.celery_app worker -B --loglevel=info
"""

from celery import Celery
from app.core.config import settings

celery_app = Celery(
    "subscription_service",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_track_started=True,
    task_ignore_result=False,
    result_expires=3600,
    # 태스크 자동 발견
    imports=('app.tasks.subscription_tasks',),
    beat_schedule={
        'check-subscription-statuses': {
            'task': 'app.tasks.subscription_tasks.check_subscription_statuses',
            'schedule': float(settings.SUBSCRIPTION_CHECK_INTERVAL_SECONDS),
            # 이전 점검이 밀렸으면 쌓지 않고 버린다
            'options': {'expires': float(settings.SUBSCRIPTION_CHECK_INTERVAL_SECONDS)},
        },
    },
)
