"""Room channel service: transport, echo suppression and send-failure handling."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import httpx
import structlog

from .config import DEFAULT_TOPIC_PREFIX
from .messages import Envelope, NetworkMessage
from .state import generate_session_id
from .transport import Transport, Unsubscribe

logger = structlog.get_logger(__name__)

MessageHandler = Callable[[NetworkMessage], Awaitable[None]]


class GameChannel:
    """One participant's connection to the broadcast transport.

    Every envelope sent through a channel carries its ``session_id``; envelopes
    looped back with that id are dropped before reaching the handler.
    """

    def __init__(
        self,
        transport: Transport,
        topic_prefix: str = DEFAULT_TOPIC_PREFIX,
        session_id: str | None = None,
    ) -> None:
        self.transport = transport
        self.topic_prefix = topic_prefix
        self.session_id = session_id if session_id is not None else generate_session_id()

    def channel_name(self, room_code: str) -> str:
        return f"{self.topic_prefix}{room_code}"

    async def send(self, room_code: str, message: NetworkMessage) -> bool:
        """Publish a message; failures are logged and reported as ``False``."""
        envelope = Envelope(sender_session_id=self.session_id, message=message)
        try:
            await self.transport.publish(self.channel_name(room_code), envelope)
        except (httpx.HTTPError, OSError) as exc:
            logger.warning("publish failed", room_code=room_code, message_type=message.type, error=str(exc))
            return False
        return True

    def listen(self, room_code: str, handler: MessageHandler) -> Unsubscribe:
        async def on_envelope(envelope: Envelope) -> None:
            if envelope.sender_session_id == self.session_id:
                return
            await handler(envelope.message)

        return self.transport.subscribe(self.channel_name(room_code), on_envelope)
