"""Domain exceptions raised by the conversation services."""

from __future__ import annotations

from typing import Any, Optional


class ChatdeskError(Exception):
    """Base class for application errors."""


class BotNotFoundError(ChatdeskError):
    def __init__(self, bot_id: Any) -> None:
        super().__init__(f"Bot {bot_id} not found or inactive")
        self.bot_id = bot_id


class ChannelUnavailableError(ChatdeskError):
    """No connected transport handle is registered for a bot and channel."""

    def __init__(self, channel: str, bot_id: Any) -> None:
        super().__init__(f"No {channel} transport connected for bot {bot_id}")
        self.channel = channel
        self.bot_id = bot_id


class ActiveConversationExists(ChatdeskError):
    """Raised when starting a session while another one is still open for the same user."""

    def __init__(self, existing: Optional[Any] = None) -> None:
        super().__init__("An active conversation already exists for this user")
        self.existing = existing


class WorkflowConfigurationError(ChatdeskError):
    """An operator-authored workflow definition cannot be parsed."""

    def __init__(self, message: str, workflow_id: Optional[Any] = None) -> None:
        super().__init__(message)
        self.workflow_id = workflow_id
