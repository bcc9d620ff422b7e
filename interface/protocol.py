"""
Realtime protocol: the tagged JSON messages exchanged over the WebSocket.

Every frame is a JSON object whose "type" field selects the message kind.
Client frames are parsed into one of the ClientMessage models through a
discriminated union, so an unknown type or a missing field is rejected at the
edge instead of deep inside a handler.

    type                fields               direction
    login               username             client -> server
    logout              (none)               client -> server
    challenge           from, to             client -> server
    challenge_response  from, to, accepted   either direction
    onlineUsers         users: [{id, username}]  server -> clients
    challenge_received  from                 server -> target client
    start_game          opponent             server -> both clients

"from" is a Python keyword, so the models store it as `sender` and use
"from" as the field alias on the wire.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict:
        """JSON-ready dict using the wire field names."""
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Client -> server
# ---------------------------------------------------------------------------


class LoginMessage(Message):
    type: Literal["login"] = "login"
    username: Annotated[str, Field(min_length=1)]


class LogoutMessage(Message):
    type: Literal["logout"] = "logout"


class ChallengeMessage(Message):
    type: Literal["challenge"] = "challenge"
    sender: str = Field(alias="from")
    to: str


class ChallengeResponseMessage(Message):
    """Sent by the challenged player, and echoed to the challenger on refusal."""

    type: Literal["challenge_response"] = "challenge_response"
    sender: str = Field(alias="from")
    to: str
    accepted: bool


ClientMessage = Annotated[
    Union[LoginMessage, LogoutMessage, ChallengeMessage, ChallengeResponseMessage],
    Field(discriminator="type"),
]

client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(raw: str | bytes) -> ClientMessage:
    """
    Parse one client frame.

    Raises:
        pydantic.ValidationError: not JSON, unknown type, or bad fields.
    """
    return client_message_adapter.validate_json(raw)


# ---------------------------------------------------------------------------
# Server -> client
# ---------------------------------------------------------------------------


class OnlineUserEntry(Message):
    id: str
    username: str


class OnlineUsersMessage(Message):
    type: Literal["onlineUsers"] = "onlineUsers"
    users: list[OnlineUserEntry]


class ChallengeReceivedMessage(Message):
    type: Literal["challenge_received"] = "challenge_received"
    sender: str = Field(alias="from")


class StartGameMessage(Message):
    type: Literal["start_game"] = "start_game"
    opponent: str
