"""Screens derived from session state plus local-only view flags."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum

from .models import Player, Role, Session, Status, TopicResponse
from .roles import assign_roles
from .state import MAX_PASS_AND_PLAY_PLAYERS, MIN_PLAYERS, clamp_impostor_count

HIDDEN_WORD = "???"


class Screen(str, Enum):
    HOME = "HOME"
    LOBBY = "LOBBY"
    PLAYING = "PLAYING"


def derive_screen(session: Session | None) -> Screen:
    if session is None:
        return Screen.HOME
    if session.status is Status.PLAYING:
        return Screen.PLAYING
    return Screen.LOBBY


@dataclass(frozen=True)
class SecretCard:
    name: str
    role: Role | None
    word: str | None

    @property
    def is_impostor(self) -> bool:
        return self.role is Role.IMPOSTOR


def secret_card(session: Session, player_id: str) -> SecretCard | None:
    """What the reveal screen shows one player.

    Impostors still receive the topic in their snapshot; only this card hides it.
    Players admitted mid-round have no role and get no card.
    """
    player = session.find_player(player_id)
    if player is None or player.role is None or session.status is not Status.PLAYING or session.round_data is None:
        return None
    if player.role is Role.IMPOSTOR:
        return SecretCard(name=player.name, role=player.role, word=HIDDEN_WORD)
    return SecretCard(name=player.name, role=player.role, word=session.round_data.topic)


class ViewStateMachine:
    """Tracks the active screen and the local "secret revealed" flag."""

    def __init__(self) -> None:
        self.screen = Screen.HOME
        self.secret_revealed = False
        self.session: Session | None = None

    def apply(self, session: Session | None) -> Screen:
        self.session = session
        next_screen = derive_screen(session)
        if next_screen is not Screen.PLAYING:
            self.secret_revealed = False
        self.screen = next_screen
        return self.screen

    def reveal(self) -> bool:
        if self.screen is not Screen.PLAYING:
            return False
        self.secret_revealed = True
        return True

    def hide(self) -> None:
        self.secret_revealed = False

    def on_reset(self) -> None:
        self.secret_revealed = False


class PassStage(str, Enum):
    PASSING = "PASSING"
    REVEALING = "REVEALING"
    PLAYING = "PLAYING"


@dataclass
class PassAndPlayRound:
    """Single-device round: the device is handed to each player in turn."""

    players: list[Player]
    category: str
    topic: str
    current_player_index: int = 0
    stage: PassStage = PassStage.PASSING
    seen: set[str] = field(default_factory=set)

    @property
    def current_player(self) -> Player:
        return self.players[self.current_player_index]

    def confirm_identity(self) -> None:
        if self.stage is PassStage.PASSING:
            self.stage = PassStage.REVEALING

    def finish_reveal(self) -> PassStage:
        if self.stage is not PassStage.REVEALING:
            return self.stage
        self.seen.add(self.current_player.id)
        if self.current_player_index == len(self.players) - 1:
            self.stage = PassStage.PLAYING
            self.current_player_index = 0
        else:
            self.stage = PassStage.PASSING
            self.current_player_index += 1
        return self.stage

    def card(self) -> SecretCard:
        player = self.current_player
        word = HIDDEN_WORD if player.role is Role.IMPOSTOR else self.topic
        return SecretCard(name=player.name, role=player.role, word=word)


def deal_pass_and_play(
    names: list[str],
    impostor_count: int,
    topic: TopicResponse,
    rng: random.Random | None = None,
) -> PassAndPlayRound:
    if len(names) < MIN_PLAYERS:
        raise ValueError(f"at least {MIN_PLAYERS} players are needed")
    if len(names) > MAX_PASS_AND_PLAY_PLAYERS:
        raise ValueError(f"at most {MAX_PASS_AND_PLAY_PLAYERS} players fit on one device")
    players = [Player(id=str(index), name=name.strip() or f"Player {index + 1}") for index, name in enumerate(names)]
    count = clamp_impostor_count(impostor_count, len(players))
    roles = assign_roles([player.id for player in players], count, rng)
    dealt = [player.model_copy(update={"role": roles[player.id]}) for player in players]
    return PassAndPlayRound(players=dealt, category=topic.category, topic=topic.topic)
