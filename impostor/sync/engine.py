"""Pure session transitions applied by the host."""

from __future__ import annotations

import random

from .models import Player, RoundData, Session, Settings, Status, TopicResponse
from .roles import assign_roles
from .state import clamp_impostor_count


def with_clamped_settings(session: Session) -> Session:
    clamped = clamp_impostor_count(session.settings.impostor_count, len(session.players))
    if clamped == session.settings.impostor_count:
        return session
    return session.model_copy(update={"settings": Settings(impostor_count=clamped)})


def admit_player(session: Session, player_id: str, name: str, room_code: str) -> Session | None:
    """Return the session with the player appended, or ``None`` when nothing changes."""
    if room_code != session.room_code or not player_id or session.has_player(player_id):
        return None
    players = session.players + (Player(id=player_id, name=name, is_host=False),)
    return with_clamped_settings(session.model_copy(update={"players": players}))


def change_impostor_count(session: Session, delta: int) -> Session:
    requested = clamp_impostor_count(session.settings.impostor_count, len(session.players)) + delta
    clamped = clamp_impostor_count(requested, len(session.players))
    return session.model_copy(update={"settings": Settings(impostor_count=clamped)})


def begin_round(session: Session, topic: TopicResponse, rng: random.Random | None = None) -> Session:
    session = with_clamped_settings(session)
    roles = assign_roles([player.id for player in session.players], session.settings.impostor_count, rng)
    players = tuple(player.model_copy(update={"role": roles[player.id]}) for player in session.players)
    return session.model_copy(
        update={
            "players": players,
            "round_data": RoundData(category=topic.category, topic=topic.topic),
            "status": Status.PLAYING,
        }
    )


def end_round(session: Session) -> Session:
    players = tuple(player.model_copy(update={"role": None}) for player in session.players)
    return session.model_copy(update={"players": players, "round_data": None, "status": Status.LOBBY})
