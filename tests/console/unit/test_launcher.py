import asyncio
from dataclasses import replace

from impostor.console import launcher
from impostor.console.launcher import parse_args, render, render_pass_step, run_local
from impostor.sync.config import load_settings
from impostor.sync.models import Player, Role, RoundData, Session, Settings, Status, TopicResponse
from impostor.sync.view import PassStage, ViewStateMachine, deal_pass_and_play


def _playing() -> Session:
    return Session(
        room_code="AB2C",
        status=Status.PLAYING,
        players=(
            Player(id="h1", name="Alex", is_host=True, role=Role.INNOCENT),
            Player(id="g1", name="Sam", role=Role.IMPOSTOR),
        ),
        settings=Settings(impostor_count=1),
        round_data=RoundData(category="Animal", topic="Koala"),
    )


def test_parse_args_for_each_command() -> None:
    host = parse_args(["host", "--name", "Alex", "--start-relay"])
    join = parse_args(["--relay-url", "http://relay.local", "join", "--name", "Sam", "--room", "ab2c"])
    relay = parse_args(["relay", "--port", "9000"])

    assert (host.command, host.name, host.start_relay, host.room) == ("host", "Alex", True, None)
    assert (join.command, join.room, join.relay_url) == ("join", "ab2c", "http://relay.local")
    assert (relay.command, relay.port) == ("relay", 9000)


def test_render_waiting_screen_before_first_snapshot() -> None:
    assert render(ViewStateMachine(), "g1", "AB2C") == ["Waiting for the host of room AB2C ..."]


def test_render_keeps_secret_hidden_until_revealed() -> None:
    view = ViewStateMachine()
    view.apply(_playing())

    hidden = render(view, "g1", "AB2C")
    view.reveal()
    impostor = render(view, "g1", "AB2C")
    innocent = render(view, "h1", "AB2C")

    assert "Category: Animal" in hidden
    assert not any("Koala" in line for line in hidden)
    assert impostor[-1] == "You are the IMPOSTOR. Secret word: ???"
    assert innocent[-1] == "You are INNOCENT. Secret word: Koala"
    assert "  - Alex (host) <- you" in innocent
    assert "  - Sam" in innocent


def test_render_tells_mid_round_joiner_to_wait() -> None:
    session = _playing()
    late = session.model_copy(update={"players": session.players + (Player(id="g2", name="Kim"),)})
    view = ViewStateMachine()
    view.apply(late)
    view.reveal()

    lines = render(view, "g2", "AB2C")

    assert lines[-1] == "You joined mid-round; wait for the next one."
    assert not any("Koala" in line for line in lines)


def test_parse_args_for_local_round() -> None:
    args = parse_args(["local", "--players", "Ann", "Bob", "Cat", "--impostors", "2"])

    assert (args.command, args.players, args.impostors) == ("local", ["Ann", "Bob", "Cat"], 2)


def test_render_pass_step_follows_the_device_around() -> None:
    round_ = deal_pass_and_play(["Ann", "Bob", "Cat"], impostor_count=1, topic=TopicResponse(category="Job", topic="Chef"))

    assert render_pass_step(round_)[0].startswith("Pass the device to Ann.")
    round_.confirm_identity()
    assert round_.stage is PassStage.REVEALING
    revealing = render_pass_step(round_)
    assert revealing[1] == "Category: Job"
    assert revealing[2] in ("Secret word: Chef", "Secret word: ???")


def test_run_local_walks_every_player_through_their_card(monkeypatch, capsys) -> None:
    settings = replace(load_settings(), gemini_api_key=None)
    presses: list[int] = []

    async def press_enter() -> str:
        presses.append(1)
        return ""

    monkeypatch.setattr(launcher, "_read_command", press_enter)

    code = asyncio.run(run_local(settings, ["Ann", "Bob", "Cat"], 1))
    output = capsys.readouterr().out

    assert code == 0
    assert len(presses) == 6
    assert output.count("Secret word: ???") == 1
    assert "Everyone has seen their card." in output


def test_run_local_rejects_too_few_players(capsys) -> None:
    settings = replace(load_settings(), gemini_api_key=None)

    assert asyncio.run(run_local(settings, ["Ann", "Bob"], 1)) == 1
    assert "at least 3 players" in capsys.readouterr().err
