"""Business context and system prompts for the reply assistant."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.bot import Bot, BotAIContext
from app.schemas.ai import Intent

DEFAULT_RESTRICTED_TOPICS = [
    "politics",
    "religion",
    "personal opinions",
    "medical advice",
    "legal advice",
    "financial advice",
    "controversial topics",
    "personal life",
    "gossip",
    "rumors",
]

_INTENT_DESCRIPTIONS = {
    Intent.GREETING: "User is greeting or starting a conversation",
    Intent.QUESTION: "User is asking a question about products, services, or information",
    Intent.SUPPORT: "User needs help or technical support",
    Intent.SALES: "User is interested in purchasing or inquiring about products/services",
    Intent.COMPLAINT: "User is expressing dissatisfaction or reporting an issue",
    Intent.CLOSURE: "User is ending the conversation",
    Intent.LOCATION_REQUEST: "User is asking about location or address",
    Intent.SERVICE_INQUIRY: "User is asking about specific services",
    Intent.BOOKING_REQUEST: "User wants to book, schedule or reserve an appointment",
    Intent.OFF_TOPIC: "User is asking about FORBIDDEN topics or topics not related to the business",
    Intent.UNKNOWN: "Intent is unclear or doesn't fit other categories",
}


@dataclass
class AssistantProfile:
    bot_id: UUID
    business_name: str
    business_type: Optional[str] = None
    business_description: Optional[str] = None
    business_address: Optional[str] = None
    business_context: str = ""
    system_prompt: Optional[str] = None
    allowed_topics: List[str] = field(default_factory=list)
    restricted_topics: List[str] = field(default_factory=lambda: list(DEFAULT_RESTRICTED_TOPICS))
    response_style: str = "professional"
    max_response_length: int = 500


class AIContextService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_profile(self, bot_id: UUID) -> Optional[AssistantProfile]:
        bot = self.db.query(Bot).filter(Bot.id == bot_id).first()
        if bot is None:
            return None
        business = bot.business
        profile = AssistantProfile(
            bot_id=bot.id,
            business_name=business.name if business else bot.name,
            business_type=business.business_type if business else None,
            business_description=business.description if business else None,
            business_address=business.address if business else None,
        )
        context = (
            self.db.query(BotAIContext).filter(BotAIContext.bot_id == bot_id).first()
        )
        if context is not None:
            profile.business_context = context.business_context or ""
            profile.system_prompt = context.system_prompt
            profile.allowed_topics = list(context.allowed_topics or [])
            if context.restricted_topics:
                profile.restricted_topics = list(context.restricted_topics)
            profile.response_style = context.response_style or "professional"
            profile.max_response_length = context.max_response_length or 500
        return profile

    @staticmethod
    def build_reply_prompt(profile: Optional[AssistantProfile], intent: Intent) -> str:
        if profile is None:
            prompt = "You are a helpful chat assistant for a business."
        elif profile.system_prompt:
            prompt = profile.system_prompt
        else:
            prompt = f"You are a chat assistant for {profile.business_name}"
            if profile.business_type:
                prompt += f", a {profile.business_type}"
            prompt += ".\n\n"
            if profile.business_context:
                prompt += f"Business Context:\n{profile.business_context}\n\n"
            if profile.business_description:
                prompt += f"Business Description:\n{profile.business_description}\n\n"
            if profile.business_address:
                prompt += f"Location: {profile.business_address}\n\n"
            prompt += (
                "Your role:\n"
                f"- Answer questions about {profile.business_type or 'our'} services\n"
                "- Help customers with inquiries\n"
                f"- Be {profile.response_style} and helpful\n"
            )
            if profile.allowed_topics:
                prompt += "\nTopics you can discuss:\n"
                prompt += "".join(f"- {topic}\n" for topic in profile.allowed_topics)
            prompt += "\nNever discuss:\n"
            prompt += "".join(f"- {topic}\n" for topic in profile.restricted_topics)
        prompt += f"\n\nProvide a natural, conversational response based on the user's intent: {intent.value}"
        if profile is not None:
            prompt += f"\n\nKeep your response under {profile.max_response_length} characters."
        return prompt

    @staticmethod
    def build_intent_prompt(profile: Optional[AssistantProfile]) -> str:
        prompt = (
            "You are a chat assistant that classifies customer messages. For each message:\n"
            "1. Detect the intent\n"
            "2. Judge the sentiment\n"
            "3. Suggest a short, helpful reply\n\n"
        )
        if profile is not None:
            if profile.business_context:
                prompt += f"Business Context:\n{profile.business_context}\n\n"
            if profile.business_type:
                prompt += f"Business Type: {profile.business_type}\n"
            if profile.allowed_topics:
                prompt += f"Allowed Topics: {', '.join(profile.allowed_topics)}\n"
            prompt += "\nSTRICTLY FORBIDDEN Topics (NEVER discuss these):\n"
            prompt += "".join(f"- {topic}\n" for topic in profile.restricted_topics)
            prompt += "\n"
        prompt += "Intent Categories:\n"
        prompt += "".join(
            f"- {intent.value}: {description}\n"
            for intent, description in _INTENT_DESCRIPTIONS.items()
        )
        style = profile.response_style if profile else "professional"
        prompt += (
            f"\nAlways be {style} in your suggested responses. "
            "If the user asks about any forbidden topic, classify it as OFF_TOPIC."
        )
        return prompt
