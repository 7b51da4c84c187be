"""
MODULE OVERVIEW:
The wire codec for the chat protocol.

WHAT IS HAPPENING HERE:
Every WebSocket text frame carries exactly one flat JSON object:

    client -> server, on connect:  {"username": "<name>"}
    client -> server, chat:        {"message": "<text>"}
    server -> client, chat:        {"username": "<name>", "message": "<text>"}

Encoding goes through Pydantic models so the JSON encoder does all the escaping.
Decoding is tolerant: anything that is not a chat frame is dropped, never raised.
"""
from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from vapor_chat.shared.errors import MalformedFrame
from vapor_chat.shared.models import ParsedFrame


# strict everywhere: {"username": 42} is not a frame
class IdentityFrame(BaseModel):
    model_config = ConfigDict(strict=True)

    username: str


class ChatFrame(BaseModel):
    model_config = ConfigDict(strict=True)

    message: str


class InboundChatFrame(BaseModel):
    model_config = ConfigDict(strict=True)

    username: str
    message: str


def encode_identity(username: str) -> bytes:
    return IdentityFrame(username=username).model_dump_json().encode("utf-8")


def encode_chat(text: str) -> bytes:
    return ChatFrame(message=text).model_dump_json().encode("utf-8")


def encode_relayed(username: str, text: str) -> bytes:
    """The server -> client shape: a chat line tagged with its author."""
    return InboundChatFrame(username=username, message=text).model_dump_json().encode("utf-8")


def parse_frame(data: bytes | str) -> ParsedFrame:
    """
    Parse one inbound frame.

    Raises MalformedFrame if the payload is not UTF-8, not JSON, not an object,
    or lacks a string `username` or `message`.
    """
    if isinstance(data, (bytes, bytearray)):
        try:
            data = bytes(data).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedFrame(f"not utf-8: {e}") from e
    try:
        frame = InboundChatFrame.model_validate_json(data)
    except ValidationError as e:
        raise MalformedFrame(f"not a chat frame: {e.error_count()} error(s)") from e
    except ValueError as e:
        # lone surrogates in a str payload
        raise MalformedFrame(f"unencodable text: {e}") from e
    return ParsedFrame(username=frame.username, message=frame.message)


def decode(data: bytes | str) -> ParsedFrame | None:
    """Like `parse_frame`, but a bad frame yields None instead of an error."""
    try:
        return parse_frame(data)
    except MalformedFrame as e:
        logger.debug(f"protocol=websocket event=drop reason='{e}'")
        return None
