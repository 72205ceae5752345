"""
Durable conversation state keyed by (bot, user).

Both engines go through this service. The partial unique index on
conversation_sessions guarantees a single open row per (bot_id, user_key);
start_session turns a violation into ActiveConversationExists.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.exceptions import ActiveConversationExists
from app.models.conversation_session import ConversationSession
from app.schemas.booking import FlowKind, SessionOutcome

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ConversationSessionService:
    def __init__(
        self,
        db: Session,
        ttl_minutes: Optional[int] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.db = db
        self.ttl = timedelta(
            minutes=ttl_minutes or get_settings().session_ttl_minutes
        )
        self.clock = clock or utc_now

    def _next_expiry(self) -> datetime:
        return self.clock() + self.ttl

    def is_expired(self, session: ConversationSession) -> bool:
        return as_utc(session.expires_at) <= self.clock()

    def get_session(self, session_id: UUID) -> Optional[ConversationSession]:
        return (
            self.db.query(ConversationSession)
            .filter(ConversationSession.id == session_id)
            .first()
        )

    def list_sessions(
        self,
        bot_id: Optional[UUID] = None,
        user_key: Optional[str] = None,
        only_active: bool = False,
    ):
        """Query (not executed) over sessions, newest first."""
        q = self.db.query(ConversationSession).order_by(
            ConversationSession.created_at.desc()
        )
        if bot_id is not None:
            q = q.filter(ConversationSession.bot_id == bot_id)
        if user_key is not None:
            q = q.filter(ConversationSession.user_key == user_key)
        if only_active:
            q = q.filter(ConversationSession.is_completed.is_(False))
        return q

    def get_active(
        self,
        bot_id: UUID,
        user_key: str,
        flow_kind: Optional[FlowKind] = None,
    ) -> Optional[ConversationSession]:
        """
        The open session for (bot, user), if any.

        A session already past expires_at is closed here as expired rather
        than resumed. With flow_kind set, an open session of the other kind
        is reported as absent.
        """
        session = (
            self.db.query(ConversationSession)
            .filter(
                ConversationSession.bot_id == bot_id,
                ConversationSession.user_key == user_key,
                ConversationSession.is_completed.is_(False),
            )
            .first()
        )
        if session is None:
            return None
        if self.is_expired(session):
            logger.info(
                "Closing expired %s session %s on access", session.flow_kind, session.id
            )
            self.complete(session, SessionOutcome.EXPIRED)
            return None
        if flow_kind is not None and session.flow_kind != flow_kind.value:
            return None
        return session

    def start_session(
        self,
        bot_id: UUID,
        user_key: str,
        channel: str,
        flow_kind: FlowKind,
        current_step: str,
        collected_data: Optional[Dict[str, Any]] = None,
        flow_settings: Optional[Dict[str, Any]] = None,
        workflow_id: Optional[UUID] = None,
    ) -> ConversationSession:
        """Open a new session. Raises ActiveConversationExists if one is still open."""
        # Clears an expired leftover so it does not block the insert
        self.get_active(bot_id, user_key)
        session = ConversationSession(
            bot_id=bot_id,
            user_key=user_key,
            channel=channel,
            flow_kind=flow_kind.value,
            current_step=current_step,
            collected_data=dict(collected_data or {}),
            flow_settings=dict(flow_settings or {}),
            workflow_id=workflow_id,
            is_completed=False,
            expires_at=self._next_expiry(),
        )
        self.db.add(session)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_active(bot_id, user_key)
            raise ActiveConversationExists(existing)
        self.db.refresh(session)
        logger.info(
            "Started %s session %s for bot=%s user=%s",
            flow_kind.value,
            session.id,
            bot_id,
            user_key,
        )
        return session

    def save_progress(
        self,
        session: ConversationSession,
        current_step: str,
        collected_data: Optional[Dict[str, Any]] = None,
    ) -> ConversationSession:
        """Persist the new step (and data) and slide the expiry window."""
        session.current_step = current_step
        if collected_data is not None:
            session.collected_data = dict(collected_data)
        session.expires_at = self._next_expiry()
        self.db.commit()
        self.db.refresh(session)
        return session

    def touch(self, session: ConversationSession) -> ConversationSession:
        session.expires_at = self._next_expiry()
        self.db.commit()
        self.db.refresh(session)
        return session

    def complete(
        self,
        session: ConversationSession,
        outcome: SessionOutcome,
        current_step: Optional[str] = None,
        collected_data: Optional[Dict[str, Any]] = None,
    ) -> ConversationSession:
        if current_step is not None:
            session.current_step = current_step
        if collected_data is not None:
            session.collected_data = dict(collected_data)
        session.is_completed = True
        session.outcome = outcome.value
        self.db.commit()
        self.db.refresh(session)
        return session

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Mark every open session past its expiry as completed. Returns the count."""
        cutoff = now or self.clock()
        count = (
            self.db.query(ConversationSession)
            .filter(
                ConversationSession.is_completed.is_(False),
                ConversationSession.expires_at <= cutoff,
            )
            .update(
                {
                    ConversationSession.is_completed: True,
                    ConversationSession.outcome: SessionOutcome.EXPIRED.value,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        if count:
            logger.info("Expired %d conversation session(s)", count)
        return count
