"""Open widget WebSockets, keyed by widget session id."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import WebSocket

from app.exceptions import ChannelUnavailableError
from app.schemas.messaging import Channel

logger = logging.getLogger(__name__)


class WebSessionHub:
    def __init__(self) -> None:
        self._sockets: Dict[str, WebSocket] = {}

    def connect(self, session_id: str, websocket: WebSocket) -> None:
        previous = self._sockets.get(session_id)
        if previous is not None and previous is not websocket:
            logger.info("Replacing existing socket for web session %s", session_id)
        self._sockets[session_id] = websocket

    def disconnect(self, session_id: str, websocket: WebSocket) -> None:
        if self._sockets.get(session_id) is websocket:
            del self._sockets[session_id]

    def is_connected(self, session_id: str) -> bool:
        return session_id in self._sockets

    async def send_event(self, session_id: str, event: Dict[str, Any]) -> None:
        websocket = self._sockets.get(session_id)
        if websocket is None:
            raise ChannelUnavailableError(Channel.WEB.value, session_id)
        await websocket.send_json(event)

    def __len__(self) -> int:
        return len(self._sockets)
