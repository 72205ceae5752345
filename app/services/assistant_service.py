"""
Boundary with the intent/reply assistant.

SafeAssistant is the only way the conversation core talks to an assistant:
any failure (or a missing assistant) turns into a static fallback.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Protocol
from uuid import UUID

from app.schemas.ai import Intent, IntentResult, Sentiment

logger = logging.getLogger(__name__)

History = List[Dict[str, str]]


def without_current(history: History, text: str) -> History:
    """Drop the trailing inbound turn when it is the message being answered."""
    if history and history[-1] == {"role": "user", "content": text}:
        return history[:-1]
    return history


CLASSIFICATION_FALLBACK_REPLY = (
    "I apologize, but I encountered an error. Could you please rephrase your message?"
)

DEFAULT_REPLIES = {
    Intent.GREETING: "Hello! Welcome to our service. How can I assist you today?",
    Intent.QUESTION: "Thank you for your question. Let me help you with that.",
    Intent.SUPPORT: "I understand you need support. Let me connect you with our team.",
    Intent.SALES: "Thank you for your interest! I'd be happy to help you with information about our products and services.",
    Intent.COMPLAINT: "I apologize for any inconvenience. Your feedback is important to us. Let me help resolve this issue.",
    Intent.CLOSURE: "Thank you for contacting us! Have a great day!",
    Intent.LOCATION_REQUEST: "Let me share our location with you.",
    Intent.SERVICE_INQUIRY: "Let me tell you about our services.",
    Intent.BOOKING_REQUEST: 'I can help you book an appointment. Just type "book" to get started.',
    Intent.OFF_TOPIC: "I'm here to help with our services. How can I assist you today?",
    Intent.UNKNOWN: "Thank you for your message. How can I help you today?",
}


class ConversationAssistant(Protocol):
    async def classify_intent(
        self, message: str, bot_id: UUID, history: History
    ) -> IntentResult: ...

    async def generate_reply(
        self, message: str, intent: Intent, bot_id: UUID, history: History
    ) -> str: ...


def fallback_intent() -> IntentResult:
    return IntentResult(
        intention=Intent.UNKNOWN,
        confidence=0.0,
        sentiment=Sentiment.NEUTRAL,
        suggested_response=CLASSIFICATION_FALLBACK_REPLY,
    )


def default_reply(intent: Intent) -> str:
    return DEFAULT_REPLIES.get(intent, DEFAULT_REPLIES[Intent.UNKNOWN])


class SafeAssistant:
    def __init__(self, assistant: Optional[ConversationAssistant]) -> None:
        self._assistant = assistant

    async def classify_intent(
        self, message: str, bot_id: UUID, history: History
    ) -> IntentResult:
        if self._assistant is None:
            return fallback_intent()
        try:
            result = await self._assistant.classify_intent(message, bot_id, history)
        except Exception:
            logger.exception("Intent classification failed for bot=%s", bot_id)
            return fallback_intent()
        logger.info(
            "Intent for bot=%s: %s (%.2f)", bot_id, result.intention.value, result.confidence
        )
        return result

    async def generate_reply(
        self, message: str, intent: Intent, bot_id: UUID, history: History
    ) -> str:
        if self._assistant is None:
            return default_reply(intent)
        try:
            reply = await self._assistant.generate_reply(message, intent, bot_id, history)
        except Exception:
            logger.exception("Reply generation failed for bot=%s", bot_id)
            return default_reply(intent)
        return reply.strip() or default_reply(intent)
