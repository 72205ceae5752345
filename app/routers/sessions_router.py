"""Sessions API: list and get conversation sessions."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi_pagination import Page, Params
from fastapi_pagination.ext.sqlalchemy import paginate
from sqlalchemy.orm import Session

from app.db import get_db
from app.schemas.session import ConversationSessionRead
from app.services.conversation_session_service import ConversationSessionService

sessions_router = APIRouter(prefix="/sessions", tags=["Session"])


@sessions_router.get("", response_model=Page[ConversationSessionRead])
def list_sessions(
    params: Params = Depends(),
    bot_id: UUID | None = Query(None),
    user_key: str | None = Query(None),
    only_active: bool = Query(False),
    db: Session = Depends(get_db),
) -> Page[ConversationSessionRead]:
    """List conversation sessions, newest first."""
    svc = ConversationSessionService(db)
    query = svc.list_sessions(bot_id=bot_id, user_key=user_key, only_active=only_active)
    return paginate(query, params=params)


@sessions_router.get("/{session_id}", response_model=ConversationSessionRead)
def get_session(
    session_id: UUID,
    db: Session = Depends(get_db),
) -> ConversationSessionRead:
    """Get a session by ID."""
    svc = ConversationSessionService(db)
    session = svc.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return ConversationSessionRead.model_validate(session)
