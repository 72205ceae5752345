"""Celery application for background jobs."""

from celery import Celery

from app.config import get_settings

settings = get_settings()

celery_app = Celery(
    "chatdesk",
    broker=settings.celery_broker_url or settings.redis_url,
    backend=settings.celery_result_backend or settings.redis_url,
    include=["app.tasks.session_sweep_task"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
    beat_schedule={
        "sweep-expired-sessions": {
            "task": "app.tasks.session_sweep_task.sweep_expired_sessions_task",
            "schedule": float(settings.session_sweep_interval_seconds),
        },
    },
)
