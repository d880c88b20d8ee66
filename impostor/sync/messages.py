"""Wire messages exchanged on a room channel."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import Field, ValidationError

from .models import Session, WireModel


class JoinPayload(WireModel):
    name: str
    room_code: str = Field(min_length=1)
    player_id: str = Field(min_length=1)


class JoinRequest(WireModel):
    type: Literal["JOIN_REQUEST"] = "JOIN_REQUEST"
    payload: JoinPayload


class StateUpdate(WireModel):
    type: Literal["STATE_UPDATE"] = "STATE_UPDATE"
    payload: Session


class ResetGame(WireModel):
    type: Literal["RESET_GAME"] = "RESET_GAME"
    payload: None = None


NetworkMessage = Annotated[Union[JoinRequest, StateUpdate, ResetGame], Field(discriminator="type")]


class Envelope(WireModel):
    sender_session_id: str = Field(alias="senderId", min_length=1)
    message: NetworkMessage

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


def decode_envelope(raw: str | bytes) -> Envelope | None:
    """Parse an envelope, returning ``None`` for anything that is not one of ours."""
    try:
        return Envelope.model_validate_json(raw)
    except ValidationError:
        return None


def join_request(name: str, room_code: str, player_id: str) -> JoinRequest:
    return JoinRequest(payload=JoinPayload(name=name, room_code=room_code, player_id=player_id))
