"""Read schemas for conversation sessions."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel


class ConversationSessionRead(BaseModel):
    id: UUID
    bot_id: UUID
    user_key: str
    channel: str
    flow_kind: str
    current_step: str
    collected_data: dict[str, Any]
    workflow_id: Optional[UUID] = None
    is_completed: bool
    outcome: Optional[str] = None
    expires_at: datetime
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
