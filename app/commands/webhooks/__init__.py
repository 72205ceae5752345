"""Webhook command handlers."""

from app.commands.webhooks.inbound_message_command import InboundMessageCommand

__all__ = ["InboundMessageCommand"]
