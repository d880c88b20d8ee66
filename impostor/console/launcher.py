"""Terminal front end: host or join a room, play on one device, or run the local relay."""

from __future__ import annotations

import argparse
import asyncio
import subprocess
import sys
import time
from dataclasses import replace

import httpx

from impostor.sync.channel import GameChannel
from impostor.sync.client import ClientReconciler
from impostor.sync.config import SyncSettings, load_settings
from impostor.sync.errors import RoundStartError
from impostor.sync.host import HostAuthority
from impostor.sync.logs import configure_logging
from impostor.sync.models import Session, TopicResponse
from impostor.sync.state import normalize_room_code
from impostor.sync.topics import StaticTopicProvider, TopicOk, create_topic_provider, fetch_topic
from impostor.sync.transport import HttpRelayTransport
from impostor.sync.view import PassAndPlayRound, PassStage, Screen, ViewStateMachine, deal_pass_and_play, secret_card

HOST_HELP = "commands: + / - (impostors), start, reset, show, hide, quit"
GUEST_HELP = "commands: show, hide, quit"
SCROLL_AWAY = "\n" * 40


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Impostor party game")
    parser.add_argument("--relay-url", default=None, help="ntfy-compatible relay base URL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    host = subparsers.add_parser("host", help="create a room and act as its host")
    host.add_argument("--name", required=True)
    host.add_argument("--room", default=None, help="room code to use instead of a random one")
    host.add_argument("--start-relay", action="store_true", help="spawn the bundled relay first")

    join = subparsers.add_parser("join", help="join an existing room")
    join.add_argument("--name", required=True)
    join.add_argument("--room", required=True)

    local = subparsers.add_parser("local", help="pass-and-play round on this device")
    local.add_argument("--players", nargs="+", required=True, metavar="NAME")
    local.add_argument("--impostors", type=int, default=1)

    relay = subparsers.add_parser("relay", help="run the bundled relay server")
    relay.add_argument("--host", default=None)
    relay.add_argument("--port", type=int, default=None)
    return parser.parse_args(argv)


def render(view: ViewStateMachine, player_id: str, room_code: str | None) -> list[str]:
    session = view.session
    if view.screen is Screen.HOME or session is None:
        return [f"Waiting for the host of room {room_code or '?'} ..."]

    lines = [f"Room {session.room_code} - {session.status.value}"]
    if view.screen is Screen.PLAYING and session.round_data is not None:
        lines.append(f"Category: {session.round_data.category}")
    for player in session.players:
        marker = " (host)" if player.is_host else ""
        you = " <- you" if player.id == player_id else ""
        lines.append(f"  - {player.name}{marker}{you}")
    count = session.settings.impostor_count
    lines.append(f"Impostors: {count}")

    if view.screen is Screen.PLAYING:
        card = secret_card(session, player_id)
        if card is None:
            lines.append("You joined mid-round; wait for the next one.")
        elif view.secret_revealed:
            lines.append(f"You are {'the IMPOSTOR' if card.is_impostor else 'INNOCENT'}. Secret word: {card.word}")
        else:
            lines.append("Type 'show' to reveal your secret.")
    return lines


def _print_screen(view: ViewStateMachine, player_id: str, room_code: str | None) -> None:
    print("\n".join(render(view, player_id, room_code)), flush=True)


async def _read_command() -> str | None:
    line = await asyncio.get_running_loop().run_in_executor(None, sys.stdin.readline)
    if line == "":
        return None
    return line.strip().lower()


async def run_host(settings: SyncSettings, name: str, room_code: str | None) -> int:
    transport = HttpRelayTransport(settings.relay_url)
    channel = GameChannel(transport, topic_prefix=settings.topic_prefix)
    host = HostAuthority(
        channel,
        topics=create_topic_provider(settings),
        fallback=StaticTopicProvider(),
        heartbeat_interval=settings.heartbeat_seconds,
        topic_timeout=settings.topic_timeout_seconds,
    )
    view = ViewStateMachine()

    def on_change(session: Session) -> None:
        view.apply(session)
        _print_screen(view, host.player_id, session.room_code)

    host.add_listener(on_change)
    session = host.create_session(name, room_code=normalize_room_code(room_code) if room_code else None)
    print(f"Share room code {session.room_code}. {HOST_HELP}", flush=True)
    host.start_heartbeat()
    await host.broadcast()

    try:
        while True:
            command = await _read_command()
            if command is None or command == "quit":
                break
            if command == "+":
                await host.update_impostor_count(1)
            elif command == "-":
                await host.update_impostor_count(-1)
            elif command == "start":
                try:
                    await host.start_round()
                except RoundStartError as exc:
                    print(f"Could not start round: {exc}", flush=True)
            elif command == "reset":
                await host.reset_round()
            elif command == "show":
                view.reveal()
                _print_screen(view, host.player_id, host.session.room_code)
            elif command == "hide":
                view.hide()
                _print_screen(view, host.player_id, host.session.room_code)
            elif command:
                print(HOST_HELP, flush=True)
    finally:
        await host.close()
        await transport.aclose()
    return 0


async def run_guest(settings: SyncSettings, name: str, room_code: str) -> int:
    transport = HttpRelayTransport(settings.relay_url)
    channel = GameChannel(transport, topic_prefix=settings.topic_prefix)
    client = ClientReconciler(channel, retry_interval=settings.join_retry_seconds)
    view = ViewStateMachine()

    def on_change(session: Session) -> None:
        # heartbeats repeat the same snapshot
        changed = session != view.session
        view.apply(session)
        if changed:
            _print_screen(view, client.player_id, client.active_room_code)

    client.add_listener(on_change)
    client.add_reset_listener(view.on_reset)
    await client.join_room(name, room_code)
    print(GUEST_HELP, flush=True)
    _print_screen(view, client.player_id, client.active_room_code)

    try:
        while True:
            command = await _read_command()
            if command is None or command == "quit":
                break
            if command == "show":
                if not view.reveal():
                    print("Nothing to reveal yet.", flush=True)
            elif command == "hide":
                view.hide()
            elif command:
                print(GUEST_HELP, flush=True)
                continue
            _print_screen(view, client.player_id, client.active_room_code)
    finally:
        await client.leave()
        await transport.aclose()
    return 0


def render_pass_step(round_: PassAndPlayRound) -> list[str]:
    player = round_.current_player
    if round_.stage is PassStage.PASSING:
        return [f"Pass the device to {player.name}. Press Enter when only they can see the screen."]
    if round_.stage is PassStage.REVEALING:
        card = round_.card()
        return [
            f"{card.name}, you are {'the IMPOSTOR' if card.is_impostor else 'INNOCENT'}.",
            f"Category: {round_.category}",
            f"Secret word: {card.word}",
            "Press Enter to hide it and pass the device on.",
        ]
    return [f"Everyone has seen their card. Category: {round_.category}", f"{player.name} starts the discussion."]


async def local_topic(settings: SyncSettings) -> TopicResponse:
    result = await fetch_topic(create_topic_provider(settings), timeout=settings.topic_timeout_seconds)
    if isinstance(result, TopicOk):
        return result.topic
    return StaticTopicProvider().pick()


async def run_local(settings: SyncSettings, names: list[str], impostor_count: int) -> int:
    try:
        round_ = deal_pass_and_play(names, impostor_count, await local_topic(settings))
    except ValueError as exc:
        print(f"Could not deal the round: {exc}", file=sys.stderr)
        return 1

    while round_.stage is not PassStage.PLAYING:
        print("\n".join(render_pass_step(round_)), flush=True)
        if await _read_command() is None:
            return 0
        if round_.stage is PassStage.PASSING:
            round_.confirm_identity()
        else:
            round_.finish_reveal()
            print(SCROLL_AWAY, flush=True)
    print("\n".join(render_pass_step(round_)), flush=True)
    return 0


def wait_for_relay(relay_url: str, timeout_s: float = 8.0) -> bool:
    start = time.time()
    while time.time() - start < timeout_s:
        try:
            response = httpx.get(f"{relay_url}/docs", timeout=0.5)
            if response.status_code < 500:
                return True
        except httpx.HTTPError:
            pass
        time.sleep(0.2)
    return False


def maybe_start_relay(settings: SyncSettings) -> subprocess.Popen[str] | None:
    command = [
        sys.executable,
        "-m",
        "uvicorn",
        "impostor.relay.api:app",
        "--host",
        settings.relay_host,
        "--port",
        str(settings.relay_port),
    ]
    process = subprocess.Popen(command, text=True)
    if wait_for_relay(f"http://{settings.relay_host}:{settings.relay_port}"):
        return process
    process.terminate()
    return None


def run_relay(settings: SyncSettings, host: str | None, port: int | None) -> int:
    import uvicorn

    uvicorn.run("impostor.relay.api:app", host=host or settings.relay_host, port=port or settings.relay_port)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level)
    if args.relay_url:
        settings = replace(settings, relay_url=args.relay_url.rstrip("/"))

    if args.command == "relay":
        return run_relay(settings, args.host, args.port)
    if args.command == "local":
        try:
            return asyncio.run(run_local(settings, args.players, args.impostors))
        except KeyboardInterrupt:
            return 130

    relay_process: subprocess.Popen[str] | None = None
    if args.command == "host" and args.start_relay:
        relay_process = maybe_start_relay(settings)
        if relay_process is None:
            print("Relay could not be started.", file=sys.stderr)
            return 1
        settings = replace(settings, relay_url=f"http://{settings.relay_host}:{settings.relay_port}")

    try:
        if args.command == "host":
            return asyncio.run(run_host(settings, args.name, args.room))
        return asyncio.run(run_guest(settings, args.name, args.room))
    except KeyboardInterrupt:
        return 130
    finally:
        if relay_process is not None:
            relay_process.terminate()


if __name__ == "__main__":
    raise SystemExit(main())
