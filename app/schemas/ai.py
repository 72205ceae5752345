"""Result shapes returned by the conversation assistant."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Intent(str, Enum):
    GREETING = "GREETING"
    QUESTION = "QUESTION"
    SUPPORT = "SUPPORT"
    SALES = "SALES"
    COMPLAINT = "COMPLAINT"
    CLOSURE = "CLOSURE"
    LOCATION_REQUEST = "LOCATION_REQUEST"
    SERVICE_INQUIRY = "SERVICE_INQUIRY"
    BOOKING_REQUEST = "BOOKING_REQUEST"
    OFF_TOPIC = "OFF_TOPIC"
    UNKNOWN = "UNKNOWN"


class Sentiment(str, Enum):
    POSITIVE = "POSITIVE"
    NEUTRAL = "NEUTRAL"
    NEGATIVE = "NEGATIVE"


class IntentResult(BaseModel):
    """Classification of a single user message."""

    intention: Intent = Field(description="Detected intent category")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence between 0 and 1")
    sentiment: Sentiment = Field(default=Sentiment.NEUTRAL)
    suggested_response: str = Field(default="", description="Short reply suggestion")
