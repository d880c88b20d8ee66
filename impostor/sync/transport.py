"""Best-effort broadcast transports for room channels."""

from __future__ import annotations

import asyncio
import json
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Protocol

import httpx
import structlog

from .messages import Envelope, decode_envelope

logger = structlog.get_logger(__name__)

EnvelopeHandler = Callable[[Envelope], Awaitable[None]]
Unsubscribe = Callable[[], None]
DropRule = Callable[[str, Envelope], bool]

DEFAULT_HISTORY = 256


class Transport(Protocol):
    async def publish(self, channel: str, envelope: Envelope) -> None:
        """Send an envelope to every subscriber of a channel, the sender included."""

    def subscribe(self, channel: str, handler: EnvelopeHandler) -> Unsubscribe:
        """Register a handler for a channel and return a callable that removes it."""


class InMemoryTransport:
    """Loopback transport shared by every participant living in one process.

    Envelopes are re-parsed from JSON for each delivery so that replicas never
    share objects with the sender. ``drop`` may discard deliveries to simulate
    a lossy channel. Only the last ``history`` publications are kept in
    ``published``; pass 0 to record nothing.
    """

    def __init__(self, drop: DropRule | None = None, history: int = DEFAULT_HISTORY) -> None:
        if history < 0:
            raise ValueError("history must not be negative")
        self._handlers: dict[str, list[EnvelopeHandler]] = defaultdict(list)
        self._drop = drop
        self._history = history
        self.published: list[tuple[str, Envelope]] = []

    async def publish(self, channel: str, envelope: Envelope) -> None:
        if self._history:
            self.published.append((channel, envelope))
            del self.published[: -self._history]
        raw = envelope.to_json()
        for handler in list(self._handlers.get(channel, [])):
            delivered = decode_envelope(raw)
            if delivered is None or (self._drop is not None and self._drop(channel, delivered)):
                continue
            await handler(delivered)

    def subscribe(self, channel: str, handler: EnvelopeHandler) -> Unsubscribe:
        self._handlers[channel].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(channel)
            if handlers is None:
                return
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._handlers.pop(channel, None)

        return unsubscribe

    def subscriber_count(self, channel: str) -> int:
        return len(self._handlers.get(channel, []))


class HttpRelayTransport:
    """Transport over an ntfy-compatible relay (ntfy.sh or the bundled relay server).

    Publishing posts the envelope JSON as the message body; subscribing streams
    the relay's newline-delimited JSON events and forwards ``message`` events.
    """

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        reconnect_delay: float = 1.0,
        publish_timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client if client is not None else httpx.AsyncClient()
        self._owns_client = client is None
        self._reconnect_delay = reconnect_delay
        self._publish_timeout = publish_timeout
        self._streams: set[asyncio.Task[None]] = set()

    async def publish(self, channel: str, envelope: Envelope) -> None:
        response = await self._client.post(
            f"{self._base_url}/{channel}",
            content=envelope.to_json().encode("utf-8"),
            headers={"Title": "Impostor Update", "Tags": "video_game"},
            timeout=self._publish_timeout,
        )
        response.raise_for_status()

    def subscribe(self, channel: str, handler: EnvelopeHandler) -> Unsubscribe:
        task = asyncio.get_running_loop().create_task(self._stream(channel, handler), name=f"relay-{channel}")
        self._streams.add(task)
        task.add_done_callback(self._streams.discard)

        def unsubscribe() -> None:
            task.cancel()

        return unsubscribe

    async def aclose(self) -> None:
        for task in list(self._streams):
            task.cancel()
        await asyncio.gather(*self._streams, return_exceptions=True)
        if self._owns_client:
            await self._client.aclose()

    async def _stream(self, channel: str, handler: EnvelopeHandler) -> None:
        url = f"{self._base_url}/{channel}/json"
        while True:
            try:
                async with self._client.stream("GET", url, timeout=httpx.Timeout(10.0, read=None)) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        envelope = _envelope_from_event_line(line)
                        if envelope is not None:
                            await _deliver(handler, envelope, channel)
            except httpx.HTTPError as exc:
                logger.warning("relay stream interrupted", channel=channel, error=str(exc))
            await asyncio.sleep(self._reconnect_delay)


async def _deliver(handler: EnvelopeHandler, envelope: Envelope, channel: str) -> None:
    try:
        await handler(envelope)
    except Exception:
        logger.exception("envelope handler failed", channel=channel, type=envelope.message.type)


def _envelope_from_event_line(line: str) -> Envelope | None:
    if not line.strip():
        return None
    try:
        event = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("relay noise ignored", line=line[:80])
        return None
    if not isinstance(event, dict) or event.get("event") != "message":
        return None
    message = event.get("message")
    if not isinstance(message, str):
        return None
    envelope = decode_envelope(message)
    if envelope is None:
        logger.debug("foreign message ignored", message=message[:80])
    return envelope
