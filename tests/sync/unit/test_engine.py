import random

from impostor.sync.engine import admit_player, begin_round, change_impostor_count, end_round, with_clamped_settings
from impostor.sync.models import Player, Role, Session, Settings, Status, TopicResponse
from impostor.sync.state import build_initial_session


def _lobby(player_count: int, impostor_count: int = 1) -> Session:
    players = [Player(id="h1", name="Host", is_host=True)]
    players += [Player(id=f"g{index}", name=f"Guest {index}") for index in range(1, player_count)]
    return Session(room_code="AB2C", players=tuple(players), settings=Settings(impostor_count=impostor_count))


def test_admit_player_appends_in_arrival_order() -> None:
    session = build_initial_session(room_code="AB2C", host_id="h1", host_name="Host")

    session = admit_player(session, player_id="g1", name="Sam", room_code="AB2C")
    session = admit_player(session, player_id="g2", name="Kim", room_code="AB2C")

    assert session is not None
    assert [player.id for player in session.players] == ["h1", "g1", "g2"]
    assert session.players[1].is_host is False


def test_admit_player_ignores_known_id_and_wrong_room() -> None:
    session = admit_player(build_initial_session("AB2C", "h1", "Host"), "g1", "Sam", "AB2C")
    assert session is not None

    assert admit_player(session, player_id="g1", name="Sam again", room_code="AB2C") is None
    assert admit_player(session, player_id="g9", name="Lost", room_code="ZZZ") is None
    assert admit_player(session, player_id="", name="Blank", room_code="AB2C") is None


def test_change_impostor_count_clamps_for_every_roster_size() -> None:
    for player_count in range(3, 13):
        session = _lobby(player_count)
        upper = max(1, player_count // 2)
        for delta in (5, 1, -1, -10, 3, 20):
            session = change_impostor_count(session, delta)
            assert 1 <= session.settings.impostor_count <= upper
        assert change_impostor_count(session, 100).settings.impostor_count == upper
        assert change_impostor_count(session, -100).settings.impostor_count == 1


def test_with_clamped_settings_lowers_stale_count() -> None:
    session = _lobby(3, impostor_count=4)

    assert with_clamped_settings(session).settings.impostor_count == 1


def test_begin_round_sets_roles_and_round_data_together() -> None:
    session = _lobby(6, impostor_count=2)

    playing = begin_round(session, TopicResponse(category="Job", topic="Pilot"), random.Random(3))

    assert playing.status is Status.PLAYING
    assert playing.round_data is not None
    assert playing.round_data.topic == "Pilot"
    assert [player.id for player in playing.players] == [player.id for player in session.players]
    assert sum(player.role is Role.IMPOSTOR for player in playing.players) == 2
    assert all(player.role is not None for player in playing.players)
    assert session.status is Status.LOBBY


def test_end_round_clears_roles_and_round_data() -> None:
    playing = begin_round(_lobby(4), TopicResponse(category="Job", topic="Pilot"), random.Random(3))

    lobby = end_round(playing)

    assert lobby.status is Status.LOBBY
    assert lobby.round_data is None
    assert all(player.role is None for player in lobby.players)
    assert [player.id for player in lobby.players] == [player.id for player in playing.players]
