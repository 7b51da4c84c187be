"""Errors raised by the chat transport."""


class ChatTransportError(Exception):
    """Base class for every error the transport surfaces to a caller."""


class NotConnected(ChatTransportError):
    """A frame was sent while no connection was open. Nothing was written."""


class IdentityNotSet(ChatTransportError):
    """`start()` was called before a username was set."""


class MalformedFrame(ChatTransportError):
    """An inbound payload is not a chat frame.

    Only `parse_frame` raises this; `decode` turns it into "ignore the frame".
    """
