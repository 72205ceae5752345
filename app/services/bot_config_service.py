"""Read-only access to operator configuration for a bot."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.bot import Bot, BotMedia, BotSettings
from app.models.workflow import Workflow
from app.schemas.booking import BookingPolicy


@dataclass(frozen=True)
class BotConfig:
    bot_id: UUID
    business_id: UUID
    channel: str
    booking_enabled: bool = True
    booking_keywords: List[str] = field(default_factory=list)
    confirmation_message: Optional[str] = None
    cancellation_message: Optional[str] = None
    require_gender: bool = False
    require_booking_for: bool = True
    workflow_enabled: bool = True
    ai_enabled: bool = True
    auto_reply_message: Optional[str] = None

    def booking_policy(self) -> BookingPolicy:
        return BookingPolicy(
            require_booking_for=self.require_booking_for,
            require_gender=self.require_gender,
            confirmation_message=self.confirmation_message,
            cancellation_message=self.cancellation_message,
        )

    def matches_booking_keyword(self, text: str) -> bool:
        lowered = text.lower()
        return any(
            keyword.strip() and keyword.strip().lower() in lowered
            for keyword in self.booking_keywords
        )


class BotConfigService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_bot(self, bot_id: UUID) -> Optional[Bot]:
        return (
            self.db.query(Bot)
            .filter(Bot.id == bot_id, Bot.is_active.is_(True))
            .first()
        )

    def get_config(self, bot: Bot) -> BotConfig:
        """Flags for the bot; a missing settings row yields the defaults."""
        settings = (
            self.db.query(BotSettings).filter(BotSettings.bot_id == bot.id).first()
        )
        default_keywords = list(get_settings().default_booking_keywords)
        if settings is None:
            return BotConfig(
                bot_id=bot.id,
                business_id=bot.business_id,
                channel=bot.channel,
                booking_keywords=default_keywords,
            )
        return BotConfig(
            bot_id=bot.id,
            business_id=bot.business_id,
            channel=bot.channel,
            booking_enabled=settings.booking_enabled,
            booking_keywords=list(settings.booking_trigger_keywords or default_keywords),
            confirmation_message=settings.booking_confirmation_message,
            cancellation_message=settings.booking_cancellation_message,
            require_gender=settings.booking_require_gender,
            require_booking_for=settings.booking_require_booking_for,
            workflow_enabled=settings.workflow_enabled,
            ai_enabled=settings.ai_enabled,
            auto_reply_message=settings.auto_reply_message,
        )

    def get_config_for(self, bot_id: UUID) -> Optional[BotConfig]:
        bot = self.get_bot(bot_id)
        if bot is None:
            return None
        return self.get_config(bot)

    def get_media(
        self, bot_id: UUID, media_types: Optional[Iterable[str]] = None
    ) -> List[BotMedia]:
        q = self.db.query(BotMedia).filter(
            BotMedia.bot_id == bot_id, BotMedia.is_active.is_(True)
        )
        if media_types is not None:
            q = q.filter(BotMedia.media_type.in_(list(media_types)))
        return q.order_by(BotMedia.display_order.asc(), BotMedia.created_at.asc()).all()

    def get_published_workflows(self, bot_id: UUID) -> List[Workflow]:
        """Published, active workflows in stable (created_at, id) order."""
        return (
            self.db.query(Workflow)
            .filter(
                Workflow.bot_id == bot_id,
                Workflow.is_published.is_(True),
                Workflow.is_active.is_(True),
            )
            .order_by(Workflow.created_at.asc(), Workflow.id.asc())
            .all()
        )

    def get_workflow(self, workflow_id: UUID) -> Optional[Workflow]:
        return self.db.query(Workflow).filter(Workflow.id == workflow_id).first()
