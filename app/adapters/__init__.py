"""Channel adapters for chat integrations."""

from app.adapters.base import (
    AdapterContext,
    DocumentCapable,
    LocationCapable,
    MessagingAdapter,
    RichContentCapable,
    TypingCapable,
)
from app.adapters.web import WebAdapter
from app.adapters.whatsapp import WhatsAppAdapter

__all__ = [
    "AdapterContext",
    "DocumentCapable",
    "LocationCapable",
    "MessagingAdapter",
    "RichContentCapable",
    "TypingCapable",
    "WebAdapter",
    "WhatsAppAdapter",
]
