"""Host authority: the only writer and broadcaster of a room's session."""

from __future__ import annotations

import random
from collections.abc import Callable

import structlog

from .channel import GameChannel
from .engine import admit_player, begin_round, change_impostor_count, end_round, with_clamped_settings
from .errors import RoundStartError, TopicProviderError
from .heartbeat import Heartbeat
from .messages import JoinRequest, NetworkMessage, ResetGame, StateUpdate
from .models import Session, Status, TopicResponse
from .state import MIN_PLAYERS, build_initial_session, generate_player_id, generate_room_code
from .topics import StaticTopicProvider, TopicFailed, TopicOk, TopicProvider, TopicTimedOut, fetch_topic
from .transport import Unsubscribe

logger = structlog.get_logger(__name__)

SessionListener = Callable[[Session], None]


class HostAuthority:
    def __init__(
        self,
        channel: GameChannel,
        topics: TopicProvider,
        fallback: StaticTopicProvider | None = None,
        player_id: str | None = None,
        heartbeat_interval: float = 2.0,
        topic_timeout: float = 5.0,
        rng: random.Random | None = None,
    ) -> None:
        self.channel = channel
        self.player_id = player_id if player_id is not None else generate_player_id()
        self._topics = topics
        self._fallback = fallback
        self._topic_timeout = topic_timeout
        self._rng = rng
        self._session: Session | None = None
        self._unsubscribe: Unsubscribe | None = None
        self._starting = False
        self._listeners: list[SessionListener] = []
        self.heartbeat = Heartbeat(interval=heartbeat_interval, broadcast=self.broadcast)

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RuntimeError("no session has been created")
        return self._session

    @property
    def impostor_count(self) -> int:
        return with_clamped_settings(self.session).settings.impostor_count

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def create_session(self, host_name: str, room_code: str | None = None) -> Session:
        """Build the room locally and start listening for join requests."""
        code = room_code if room_code is not None else generate_room_code()
        self._session = build_initial_session(room_code=code, host_id=self.player_id, host_name=host_name)
        self._unsubscribe = self.channel.listen(code, self.handle_message)
        self._notify()
        logger.info("room created", room_code=code, host=host_name)
        return self._session

    def start_heartbeat(self) -> None:
        self.heartbeat.start()

    async def close(self) -> None:
        self.heartbeat.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def handle_message(self, message: NetworkMessage) -> None:
        match message:
            case JoinRequest(payload=payload):
                await self.process_join_request(payload.player_id, payload.name, payload.room_code)
            case StateUpdate():
                logger.debug("external snapshot ignored by host", room_code=message.payload.room_code)
            case ResetGame():
                logger.debug("external reset ignored by host")

    async def process_join_request(self, player_id: str, name: str, room_code: str) -> bool:
        next_session = admit_player(self.session, player_id=player_id, name=name, room_code=room_code)
        if next_session is None:
            logger.debug("join ignored", player_id=player_id, room_code=room_code)
            return False
        logger.info("join accepted", player_id=player_id, name=name, players=len(next_session.players))
        await self._commit(next_session)
        return True

    async def update_impostor_count(self, delta: int) -> int:
        await self._commit(change_impostor_count(self.session, delta))
        return self.session.settings.impostor_count

    async def start_round(self) -> Session:
        """Fetch a topic, deal roles and switch to PLAYING.

        Raises :class:`RoundStartError` without touching the session when the
        round cannot start.
        """
        if self._starting:
            raise RoundStartError("a round is already being started")
        if self.session.status is Status.PLAYING:
            raise RoundStartError("a round is already in progress")
        if len(self.session.players) < MIN_PLAYERS:
            raise RoundStartError(f"at least {MIN_PLAYERS} players are needed to start a round")

        self._starting = True
        try:
            topic = await self._request_topic()
        finally:
            self._starting = False

        # the roster may have grown while the topic request was in flight
        if len(self.session.players) < MIN_PLAYERS or self.session.status is Status.PLAYING:
            raise RoundStartError("session changed while the round was starting")
        await self._commit(begin_round(self.session, topic, self._rng))
        logger.info("round started", category=topic.category, impostors=self.session.settings.impostor_count)
        return self.session

    async def reset_round(self) -> Session:
        await self.channel.send(self.session.room_code, ResetGame())
        await self._commit(end_round(self.session))
        logger.info("round reset", room_code=self.session.room_code)
        return self.session

    async def broadcast(self) -> None:
        if self._session is None:
            return
        await self.channel.send(self._session.room_code, StateUpdate(payload=self._session))

    async def _request_topic(self) -> TopicResponse:
        result = await fetch_topic(self._topics, timeout=self._topic_timeout)
        match result:
            case TopicOk(topic=topic):
                return topic
            case TopicTimedOut(timeout=timeout):
                logger.warning("topic fallback", reason="timeout", timeout=timeout)
            case TopicFailed(error=error):
                logger.warning("topic fallback", reason="provider error", error=error)

        if self._fallback is None:
            raise RoundStartError("could not start round: topic provider unavailable")
        try:
            return self._fallback.pick()
        except TopicProviderError as exc:
            raise RoundStartError(f"could not start round: {exc}") from exc

    async def _commit(self, next_session: Session) -> None:
        self._session = next_session
        self._notify()
        await self.broadcast()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.session)
