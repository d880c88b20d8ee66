import asyncio

from impostor.sync.channel import GameChannel
from impostor.sync.client import ClientReconciler
from impostor.sync.host import HostAuthority
from impostor.sync.messages import Envelope, JoinRequest, ResetGame, StateUpdate
from impostor.sync.models import Player, RoundData, Session, Settings, Status, TopicResponse
from impostor.sync.transport import InMemoryTransport


class FixedTopics:
    async def request_topic(self) -> TopicResponse:
        return TopicResponse(category="Job", topic="Pilot")


def _session(room_code: str = "AB2C", *player_ids: str, status: Status = Status.LOBBY) -> Session:
    players = tuple(Player(id=player_id, name=player_id, is_host=index == 0) for index, player_id in enumerate(player_ids))
    round_data = RoundData(category="Job", topic="Pilot") if status is Status.PLAYING else None
    return Session(room_code=room_code, status=status, players=players, settings=Settings(), round_data=round_data)


def _join_requests(transport: InMemoryTransport) -> list[JoinRequest]:
    return [envelope.message for _, envelope in transport.published if isinstance(envelope.message, JoinRequest)]


def test_join_retries_until_a_late_host_admits_the_client() -> None:
    async def _run():
        transport = InMemoryTransport()
        client = ClientReconciler(GameChannel(transport), player_id="g1", retry_interval=0.01)
        await client.join_room("Sam", "ab2c")
        await asyncio.sleep(0.05)
        sent_before_host = len(_join_requests(transport))

        host = HostAuthority(GameChannel(transport), topics=FixedTopics(), player_id="h1")
        host.create_session("Host", room_code="AB2C")
        await asyncio.sleep(0.05)
        admitted = client.admitted
        retrying = client.join_retry.running
        sent_at_admission = len(_join_requests(transport))
        await asyncio.sleep(0.05)
        sent_later = len(_join_requests(transport))
        await client.leave()
        await host.close()
        return sent_before_host, admitted, retrying, sent_at_admission, sent_later, host.session

    sent_before_host, admitted, retrying, sent_at_admission, sent_later, session = asyncio.run(_run())

    assert sent_before_host >= 2
    assert admitted is True
    assert retrying is False
    assert sent_later == sent_at_admission
    assert [player.id for player in session.players] == ["h1", "g1"]


def test_join_survives_lost_requests() -> None:
    dropped: list[str] = []

    def drop_first_two_joins(channel: str, envelope: Envelope) -> bool:
        if isinstance(envelope.message, JoinRequest) and len(dropped) < 2:
            dropped.append(envelope.message.payload.player_id)
            return True
        return False

    async def _run():
        transport = InMemoryTransport(drop=drop_first_two_joins)
        host = HostAuthority(GameChannel(transport), topics=FixedTopics(), player_id="h1")
        host.create_session("Host", room_code="AB2C")
        client = ClientReconciler(GameChannel(transport), player_id="g1", retry_interval=0.01)
        await client.join_room("Sam", "AB2C")
        for _ in range(50):
            if client.admitted:
                break
            await asyncio.sleep(0.01)
        await client.leave()
        return client, host.session

    client, session = asyncio.run(_run())

    assert dropped == ["g1", "g1"]
    assert client.admitted is True
    assert [player.id for player in session.players] == ["h1", "g1"]


def test_out_of_order_snapshots_last_delivered_wins() -> None:
    older = _session("AB2C", "h1", "g1")
    newer = _session("AB2C", "h1", "g1", "g2", status=Status.PLAYING)

    async def _run():
        client = ClientReconciler(GameChannel(InMemoryTransport()), player_id="g1", retry_interval=10)
        await client.join_room("Sam", "AB2C")
        await client.handle_message(StateUpdate(payload=newer))
        await client.handle_message(StateUpdate(payload=older))
        await client.leave()
        return client.last_known_session

    replica = asyncio.run(_run())

    assert replica.to_wire() == older.to_wire()
    assert replica.status is Status.LOBBY
    assert [player.id for player in replica.players] == ["h1", "g1"]


def test_snapshot_for_another_room_is_ignored() -> None:
    async def _run():
        client = ClientReconciler(GameChannel(InMemoryTransport()), player_id="g1", retry_interval=10)
        await client.join_room("Sam", "AB2C")
        adopted = client.adopt_snapshot(_session("ZZZ", "h9", "g1"))
        retrying = client.join_retry.running
        await client.leave()
        return adopted, client.last_known_session, retrying

    adopted, replica, retrying = asyncio.run(_run())

    assert adopted is False
    assert replica is None
    assert retrying is True


def test_reset_message_notifies_listeners_and_listeners_see_snapshots() -> None:
    resets: list[bool] = []
    seen: list[Status] = []

    async def _run():
        client = ClientReconciler(GameChannel(InMemoryTransport()), player_id="g1", retry_interval=10)
        client.add_reset_listener(lambda: resets.append(True))
        client.add_listener(lambda session: seen.append(session.status))
        await client.join_room("Sam", "AB2C")
        await client.handle_message(StateUpdate(payload=_session("AB2C", "h1", "g1", status=Status.PLAYING)))
        await client.handle_message(ResetGame())
        await client.leave()

    asyncio.run(_run())

    assert resets == [True]
    assert seen == [Status.PLAYING]


def test_leave_stops_retrying_and_unsubscribes() -> None:
    async def _run():
        transport = InMemoryTransport()
        client = ClientReconciler(GameChannel(transport), player_id="g1", retry_interval=0.01)
        await client.join_room("Sam", "AB2C")
        channel_name = client.channel.channel_name("AB2C")
        subscribed = transport.subscriber_count(channel_name)
        await client.leave()
        sent = len(_join_requests(transport))
        await asyncio.sleep(0.05)
        return subscribed, transport.subscriber_count(channel_name), sent, len(_join_requests(transport))

    subscribed, remaining, sent, sent_later = asyncio.run(_run())

    assert subscribed == 1
    assert remaining == 0
    assert sent_later == sent == 1


def test_client_ignores_its_own_echoed_join_requests() -> None:
    async def _run():
        transport = InMemoryTransport()
        received: list[object] = []
        client = ClientReconciler(GameChannel(transport), player_id="g1", retry_interval=10)
        original_handler = client.handle_message

        async def spy(message) -> None:
            received.append(message)
            await original_handler(message)

        client.handle_message = spy
        await client.join_room("Sam", "AB2C")
        await client.leave()
        return received

    assert asyncio.run(_run()) == []
