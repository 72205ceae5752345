"""Delivery of bot media items through whatever the adapter supports."""

from __future__ import annotations

import logging
from typing import Iterable

from app.adapters.base import (
    DocumentCapable,
    LocationCapable,
    MessagingAdapter,
    RichContentCapable,
)
from app.models.bot import BotMedia

logger = logging.getLogger(__name__)

MAPS_URL = "https://maps.google.com/?q={lat},{lng}"


def link_text(item: BotMedia) -> str:
    icon = "📄" if item.media_type == "document" else "🔗"
    return f"{icon} {item.title or item.file_name or 'Link'}\n{item.file_url}"


def location_text(item: BotMedia) -> str:
    lines = ["📍 " + (item.location_name or item.title or "Our location")]
    if item.location_address:
        lines.append(item.location_address)
    if item.location_latitude is not None and item.location_longitude is not None:
        lines.append(
            MAPS_URL.format(lat=item.location_latitude, lng=item.location_longitude)
        )
    return "\n".join(lines)


def has_coordinates(item: BotMedia) -> bool:
    return item.location_latitude is not None and item.location_longitude is not None


async def send_media_item(adapter: MessagingAdapter, item: BotMedia) -> None:
    kind = item.media_type
    if kind == "location":
        if isinstance(adapter, LocationCapable) and has_coordinates(item):
            await adapter.send_location(
                item.location_latitude,
                item.location_longitude,
                name=item.location_name,
                address=item.location_address,
            )
        else:
            await adapter.send_text(location_text(item))
        return
    if not item.file_url:
        return
    if kind == "document":
        if isinstance(adapter, DocumentCapable):
            await adapter.send_document(
                item.file_url,
                file_name=item.file_name,
                mime_type=item.mime_type,
                caption=item.title,
            )
        else:
            await adapter.send_text(link_text(item))
    elif kind in ("image", "video"):
        if isinstance(adapter, RichContentCapable):
            await adapter.send_rich(
                {kind: {"url": item.file_url}, "caption": item.description or item.title or ""}
            )
        else:
            await adapter.send_text(link_text(item))
    else:
        logger.debug("Skipping unsupported media type %s", kind)


async def send_media_items(adapter: MessagingAdapter, items: Iterable[BotMedia]) -> int:
    """Send each item; one failing item does not stop the rest. Returns how many were sent."""
    sent = 0
    for item in items:
        try:
            await send_media_item(adapter, item)
            sent += 1
        except Exception:
            logger.exception(
                "Failed to send %s media %s for bot=%s",
                item.media_type,
                item.id,
                adapter.bot_id,
            )
    return sent
