from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.inquiry import Inquiry
from app.schemas.messaging import Channel


class InquiryService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def create_inquiry(
        self,
        bot_id: UUID,
        channel: Channel,
        user_key: str,
        data: Dict[str, Any],
        workflow_id: Optional[UUID] = None,
        commit: bool = True,
    ) -> Inquiry:
        """Store workflow data. The phone number is only known on WhatsApp."""
        inquiry = Inquiry(
            bot_id=bot_id,
            workflow_id=workflow_id,
            source=channel.value,
            customer_phone=user_key if channel == Channel.WHATSAPP else None,
            inquiry_data=dict(data),
            status="new",
        )
        self.db.add(inquiry)
        if commit:
            self.db.commit()
            self.db.refresh(inquiry)
        else:
            self.db.flush()
        return inquiry
