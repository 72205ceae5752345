"""Celery task closing conversation sessions nobody came back to."""

from __future__ import annotations

from app.infra.celery_app import celery_app
from app.infra.logging_config import get_logger
from app.services.conversation_session_service import ConversationSessionService
from app.utils.db.db_session_helper import db_session

logger = get_logger("session_sweep")


@celery_app.task(name="app.tasks.session_sweep_task.sweep_expired_sessions_task")
def sweep_expired_sessions_task() -> int:
    """Mark every open session past its expiry as expired."""
    with db_session() as db:
        count = ConversationSessionService(db).sweep_expired()
    logger.info("Session sweep closed %d session(s)", count)
    return count
