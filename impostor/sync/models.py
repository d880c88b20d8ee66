"""Replicated session model and its wire representation."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for everything that crosses the transport as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Role(str, Enum):
    IMPOSTOR = "impostor"
    INNOCENT = "innocent"


class Status(str, Enum):
    LOBBY = "LOBBY"
    PLAYING = "PLAYING"


class Player(WireModel):
    id: str = Field(min_length=1)
    name: str
    is_host: bool = False
    role: Role | None = None


class RoundData(WireModel):
    category: str
    topic: str


class TopicResponse(RoundData):
    """What a topic provider hands back; identical in shape to round data."""


class Settings(WireModel):
    impostor_count: int = Field(default=1, ge=1)


class Session(WireModel):
    room_code: str = Field(min_length=1)
    status: Status = Status.LOBBY
    players: tuple[Player, ...] = ()
    settings: Settings = Settings()
    round_data: RoundData | None = None

    def find_player(self, player_id: str) -> Player | None:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def has_player(self, player_id: str) -> bool:
        return self.find_player(player_id) is not None

    @property
    def host(self) -> Player | None:
        return next((player for player in self.players if player.is_host), None)

    @property
    def impostors(self) -> list[Player]:
        return [player for player in self.players if player.role is Role.IMPOSTOR]
