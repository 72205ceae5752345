"""Tests for the expired session sweep task."""

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from app.infra.celery_app import celery_app
from app.models.conversation_session import ConversationSession
from app.tasks import session_sweep_task


def _session(bot, user_key, expires_at):
    return ConversationSession(
        bot_id=bot.id,
        user_key=user_key,
        channel="whatsapp",
        flow_kind="booking",
        current_step="collecting_name",
        expires_at=expires_at,
    )


def test_sweep_task_expires_stale_sessions(db, setup_bot, monkeypatch):
    now = datetime.now(timezone.utc)
    stale = _session(setup_bot, "919800000001", now - timedelta(minutes=5))
    live = _session(setup_bot, "919800000002", now + timedelta(minutes=25))
    db.add_all([stale, live])
    db.commit()

    @contextmanager
    def fake_db_session():
        yield db

    monkeypatch.setattr(session_sweep_task, "db_session", fake_db_session)

    assert session_sweep_task.sweep_expired_sessions_task() == 1
    db.refresh(stale)
    db.refresh(live)
    assert stale.is_completed is True
    assert stale.outcome == "expired"
    assert live.is_completed is False


def test_beat_schedule_registers_sweep():
    entry = celery_app.conf.beat_schedule["sweep-expired-sessions"]
    assert entry["task"] == "app.tasks.session_sweep_task.sweep_expired_sessions_task"
