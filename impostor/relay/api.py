"""FastAPI relay speaking the ntfy publish/subscribe surface used by room channels."""

from __future__ import annotations

import asyncio
import re
import secrets
import time
from collections import defaultdict
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI, HTTPException, Path, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

logger = structlog.get_logger(__name__)

CHANNEL_PATTERN = r"^[-_A-Za-z0-9]{1,64}$"
MAX_MESSAGE_BYTES = 64 * 1024
KEEPALIVE_SECONDS = 30.0
_CHANNEL_RE = re.compile(CHANNEL_PATTERN)


class RelayEvent(BaseModel):
    id: str
    time: int
    event: str
    topic: str
    message: str | None = None
    title: str | None = None


def _event(channel: str, kind: str, message: str | None = None, title: str | None = None) -> RelayEvent:
    return RelayEvent(
        id=secrets.token_urlsafe(9),
        time=int(time.time()),
        event=kind,
        topic=channel,
        message=message,
        title=title,
    )


class ChannelHub:
    """Fans published events out to websocket and streaming subscribers of a channel."""

    def __init__(self) -> None:
        self._sockets: dict[str, set[WebSocket]] = defaultdict(set)
        self._streams: dict[str, set[asyncio.Queue[RelayEvent]]] = defaultdict(set)

    async def connect(self, channel: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._sockets[channel].add(websocket)

    def disconnect(self, channel: str, websocket: WebSocket) -> None:
        sockets = self._sockets.get(channel)
        if sockets is None:
            return
        sockets.discard(websocket)
        if not sockets:
            self._sockets.pop(channel, None)

    def open_stream(self, channel: str) -> asyncio.Queue[RelayEvent]:
        queue: asyncio.Queue[RelayEvent] = asyncio.Queue()
        self._streams[channel].add(queue)
        return queue

    def close_stream(self, channel: str, queue: asyncio.Queue[RelayEvent]) -> None:
        queues = self._streams.get(channel)
        if queues is None:
            return
        queues.discard(queue)
        if not queues:
            self._streams.pop(channel, None)

    def subscriber_count(self, channel: str) -> int:
        return len(self._sockets.get(channel, set())) + len(self._streams.get(channel, set()))

    async def send_event(self, websocket: WebSocket, event: RelayEvent) -> None:
        await websocket.send_json(event.model_dump(exclude_none=True))

    async def broadcast(self, channel: str, event: RelayEvent) -> None:
        for queue in list(self._streams.get(channel, set())):
            queue.put_nowait(event)

        stale_sockets: list[WebSocket] = []
        for websocket in list(self._sockets.get(channel, set())):
            try:
                await self.send_event(websocket, event)
            except RuntimeError:
                stale_sockets.append(websocket)
        for websocket in stale_sockets:
            self.disconnect(channel=channel, websocket=websocket)


def create_app(hub: ChannelHub | None = None, keepalive_seconds: float = KEEPALIVE_SECONDS) -> FastAPI:
    app = FastAPI(title="Impostor Relay", version="0.1.0")
    channel_hub = hub if hub is not None else ChannelHub()
    app.state.hub = channel_hub

    @app.post("/{channel}", response_model=RelayEvent, response_model_exclude_none=True)
    async def publish(request: Request, channel: str = Path(pattern=CHANNEL_PATTERN)) -> RelayEvent:
        body = await request.body()
        if len(body) > MAX_MESSAGE_BYTES:
            raise HTTPException(status_code=413, detail="Message too large")
        try:
            message = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise HTTPException(status_code=400, detail="Message must be UTF-8 text") from exc

        event = _event(channel, "message", message=message, title=request.headers.get("Title"))
        await channel_hub.broadcast(channel, event)
        logger.debug("relayed", channel=channel, size=len(body), subscribers=channel_hub.subscriber_count(channel))
        return event

    @app.get("/{channel}/json")
    async def stream(channel: str = Path(pattern=CHANNEL_PATTERN)) -> StreamingResponse:
        async def lines() -> AsyncIterator[str]:
            queue = channel_hub.open_stream(channel)
            try:
                yield _event(channel, "open").model_dump_json(exclude_none=True) + "\n"
                while True:
                    try:
                        event = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
                    except asyncio.TimeoutError:
                        event = _event(channel, "keepalive")
                    yield event.model_dump_json(exclude_none=True) + "\n"
            finally:
                channel_hub.close_stream(channel, queue)

        return StreamingResponse(lines(), media_type="application/x-ndjson")

    @app.websocket("/{channel}/ws")
    async def channel_ws(websocket: WebSocket, channel: str) -> None:
        if not _valid_channel(channel):
            await websocket.close(code=1008)
            return

        await channel_hub.connect(channel=channel, websocket=websocket)
        await channel_hub.send_event(websocket=websocket, event=_event(channel, "open"))

        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            channel_hub.disconnect(channel=channel, websocket=websocket)

    return app


def _valid_channel(channel: str) -> bool:
    return _CHANNEL_RE.match(channel) is not None


app = create_app()
