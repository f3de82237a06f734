"""
Celery 태스크 패키지
"""
