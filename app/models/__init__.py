from app.models.bot import Bot, BotAIContext, BotMedia, BotSettings
from app.models.business import Business, BusinessService, BusinessTimeSlot
from app.models.conversation_event import ConversationEvent
from app.models.conversation_session import ConversationSession
from app.models.inquiry import Inquiry
from app.models.reservation import Reservation
from app.models.workflow import Workflow

__all__ = [
    "Bot",
    "BotAIContext",
    "BotMedia",
    "BotSettings",
    "Business",
    "BusinessService",
    "BusinessTimeSlot",
    "ConversationEvent",
    "ConversationSession",
    "Inquiry",
    "Reservation",
    "Workflow",
]
