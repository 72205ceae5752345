from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from app.exceptions import ChannelUnavailableError
from app.schemas.messaging import Channel

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Connected transport handles per (channel, bot).

    The transport layer registers a handle once its connection is up and
    unregisters it on disconnect; adapters only ever borrow a handle.
    """

    def __init__(self) -> None:
        self._handles: Dict[Tuple[Channel, UUID], Any] = {}

    def register(self, channel: Channel, bot_id: UUID, handle: Any) -> None:
        self._handles[(channel, bot_id)] = handle
        logger.info("Registered %s transport for bot %s", channel.value, bot_id)

    def unregister(self, channel: Channel, bot_id: UUID) -> None:
        if self._handles.pop((channel, bot_id), None) is not None:
            logger.info("Unregistered %s transport for bot %s", channel.value, bot_id)

    def get(self, channel: Channel, bot_id: UUID) -> Optional[Any]:
        return self._handles.get((channel, bot_id))

    def require(self, channel: Channel, bot_id: UUID) -> Any:
        handle = self.get(channel, bot_id)
        if handle is None:
            raise ChannelUnavailableError(channel.value, bot_id)
        return handle

    def __len__(self) -> int:
        return len(self._handles)
