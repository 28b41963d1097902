"""Live connection handle wrapping a Starlette/FastAPI WebSocket."""

import asyncio
import json
import logging
import uuid
from typing import Any

from starlette.websockets import WebSocket, WebSocketState

from ..errors import TransportError

logger = logging.getLogger("socia.relay.connection")

# Close codes
CLOSE_NORMAL = 1000
CLOSE_POLICY_VIOLATION = 1008
CLOSE_REPLACED = 4000


class ClientConnection:
    """One user's WebSocket plus per-connection state.

    Outbound writes are serialized with a lock so frames pushed from
    concurrent handler tasks never interleave on the wire.
    """

    def __init__(self, user_id: str, websocket: WebSocket):
        self.user_id = user_id
        self.connection_id = uuid.uuid4().hex[:12]
        self.active_conversations: set[str] = set()
        self._websocket = websocket
        self._send_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"ClientConnection(user_id={self.user_id!r}, connection_id={self.connection_id!r})"

    async def send(self, frame: dict[str, Any]) -> None:
        """Write one JSON frame. Raises TransportError on failure."""
        try:
            async with self._send_lock:
                await self._websocket.send_text(json.dumps(frame, ensure_ascii=False))
        except Exception as e:
            raise TransportError(f"send to {self.user_id} failed: {e}") from e

    async def receive(self) -> str | bytes:
        """Read the next raw frame. Raises TransportError when the socket closes."""
        try:
            message = await self._websocket.receive()
        except Exception as e:
            raise TransportError(f"receive from {self.user_id} failed: {e}") from e
        if message["type"] == "websocket.disconnect":
            raise TransportError(f"{self.user_id} disconnected (code={message.get('code')})")
        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes") or b""

    @property
    def is_open(self) -> bool:
        return (
            self._websocket.client_state != WebSocketState.DISCONNECTED
            and self._websocket.application_state != WebSocketState.DISCONNECTED
        )

    async def close(self, code: int = CLOSE_NORMAL) -> None:
        if not self.is_open:
            return
        try:
            await self._websocket.close(code=code)
        except RuntimeError as e:
            # Raced with the peer closing first
            logger.debug(f"Close of {self!r} ignored: {e}")
