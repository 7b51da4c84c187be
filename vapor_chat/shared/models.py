"""
MODULE OVERVIEW:
The data structures shared by the chat client, the codec and the relay server,
powered by Pydantic v2.

WHAT IS HAPPENING HERE:
`ChatMessage` is what a consumer keeps in its transcript. `Identity` replaces a
"magic string means unset" username with an explicit unset state, so a user who
really is called "null" can still chat. The two enums describe the life of a
single connection attempt.
"""
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict


class Sender(str, Enum):
    SELF = "self"
    REMOTE = "remote"


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


# WHAT IS HAPPENING HERE:
# The observer contract only says "closed". The reason is kept on the side for
# logging and for consumers that want to tell "never connected" from "dropped".
class DisconnectReason(str, Enum):
    HANDSHAKE_FAILED = "handshake_failed"
    REMOTE_CLOSED = "remote_closed"
    TRANSPORT_ERROR = "transport_error"
    LOCAL_CLOSE = "local_close"


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    sender: Sender
    content: str
    timestamp: datetime | None = None
    image_ref: str | None = None


class ParsedFrame(BaseModel):
    """An inbound chat frame: who said it and what they said."""
    model_config = ConfigDict(frozen=True)

    username: str
    message: str


class Identity(BaseModel):
    """Either unset (`username is None`) or set to a display name."""
    model_config = ConfigDict(frozen=True)

    username: str | None = None

    @classmethod
    def unset(cls) -> "Identity":
        return cls()

    @classmethod
    def of(cls, username: str) -> "Identity":
        return cls(username=username)

    @property
    def is_set(self) -> bool:
        # An empty name is treated like no name at all.
        return bool(self.username)


class RelayStats(BaseModel):
    active_sockets: int
    members: list[str]
    total_messages_relayed: int
    uptime_s: float
    server_time: datetime
