"""Replica side of a room: join handshake and snapshot adoption."""

from __future__ import annotations

from collections.abc import Callable

import structlog

from .channel import GameChannel
from .heartbeat import PeriodicTask
from .messages import JoinRequest, NetworkMessage, ResetGame, StateUpdate, join_request
from .models import Session
from .state import generate_player_id, normalize_room_code
from .transport import Unsubscribe

logger = structlog.get_logger(__name__)

SessionListener = Callable[[Session], None]
ResetListener = Callable[[], None]


class ClientReconciler:
    """Keeps a non-host participant's copy of the session.

    Snapshots are adopted wholesale in delivery order; a late, older snapshot
    replaces a newer one.
    """

    def __init__(self, channel: GameChannel, player_id: str | None = None, retry_interval: float = 1.5) -> None:
        self.channel = channel
        self.player_id = player_id if player_id is not None else generate_player_id()
        self.active_room_code: str | None = None
        self.last_known_session: Session | None = None
        self._name = ""
        self._unsubscribe: Unsubscribe | None = None
        self._session_listeners: list[SessionListener] = []
        self._reset_listeners: list[ResetListener] = []
        self.join_retry = PeriodicTask(interval=retry_interval, callback=self._retry_join, name="join-retry")

    @property
    def admitted(self) -> bool:
        return self.last_known_session is not None and self.last_known_session.has_player(self.player_id)

    def add_listener(self, listener: SessionListener) -> None:
        self._session_listeners.append(listener)

    def add_reset_listener(self, listener: ResetListener) -> None:
        self._reset_listeners.append(listener)

    async def join_room(self, name: str, room_code: str) -> None:
        """Subscribe to the room, send one join request and keep retrying until admitted."""
        await self.leave()
        self._name = name
        self.active_room_code = normalize_room_code(room_code)
        self.last_known_session = None
        self._unsubscribe = self.channel.listen(self.active_room_code, self.handle_message)
        logger.info("joining room", room_code=self.active_room_code, player_id=self.player_id)
        await self._send_join()
        if not self.admitted:
            self.join_retry.start()

    async def leave(self) -> None:
        self.join_retry.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.active_room_code = None

    async def handle_message(self, message: NetworkMessage) -> None:
        match message:
            case StateUpdate(payload=snapshot):
                self.adopt_snapshot(snapshot)
            case ResetGame():
                for listener in list(self._reset_listeners):
                    listener()
            case JoinRequest():
                pass

    def adopt_snapshot(self, snapshot: Session) -> bool:
        if self.active_room_code is None or snapshot.room_code != self.active_room_code:
            return False
        self.last_known_session = snapshot
        logger.debug("snapshot adopted", status=snapshot.status.value, players=len(snapshot.players))
        if self.admitted and self.join_retry.running:
            self.join_retry.stop()
            logger.info("admitted to room", room_code=snapshot.room_code)
        for listener in list(self._session_listeners):
            listener(snapshot)
        return True

    async def _retry_join(self) -> None:
        if self.admitted:
            self.join_retry.stop()
            return
        await self._send_join()

    async def _send_join(self) -> None:
        if self.active_room_code is None:
            return
        await self.channel.send(
            self.active_room_code,
            join_request(name=self._name, room_code=self.active_room_code, player_id=self.player_id),
        )
