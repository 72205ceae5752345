# Import celery app first
from app.infra.celery_app import celery_app

# Initialize logging configuration for Celery workers
from app.infra.logging_config import LoggingConfig
from app.tasks.session_sweep_task import sweep_expired_sessions_task

LoggingConfig()  # Initialize logging

__all__ = [
    "celery_app",
    "sweep_expired_sessions_task",
]
