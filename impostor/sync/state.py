"""Session builders and the invariants shared by host and replicas."""

from __future__ import annotations

import random
import secrets
import uuid

from .models import Player, Session, Settings, Status

ROOM_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTHS = (3, 4)
MIN_PLAYERS = 3
MAX_PASS_AND_PLAY_PLAYERS = 12


def generate_room_code(rng: random.Random | None = None) -> str:
    """Return a 3-4 character code without look-alike characters (0/O, 1/I/L)."""
    chooser = rng if rng is not None else secrets.SystemRandom()
    length = chooser.choice(ROOM_CODE_LENGTHS)
    return "".join(chooser.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def generate_player_id() -> str:
    return uuid.uuid4().hex


def generate_session_id() -> str:
    return secrets.token_hex(8)


def max_impostors(player_count: int) -> int:
    return max(1, player_count // 2)


def clamp_impostor_count(requested: int, player_count: int) -> int:
    return min(max(1, requested), max_impostors(player_count))


def build_initial_session(room_code: str, host_id: str, host_name: str) -> Session:
    return Session(
        room_code=room_code,
        status=Status.LOBBY,
        players=(Player(id=host_id, name=host_name, is_host=True),),
        settings=Settings(impostor_count=1),
    )


def normalize_room_code(raw: str) -> str:
    return raw.strip().upper()
