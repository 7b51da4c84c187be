"""
MODULE OVERVIEW:
The Session: the one object a chat consumer holds.

WHAT IS HAPPENING HERE:
A Session ties together who you are (Identity), the current Connection, and
where chat events go (the EventSink). It is also the Connection's observer:

    on_open   -> send {"username": ...} once
    on_text   -> decode, deliver "<username>: <message>" to the sink
    on_closed -> tell the sink, then stop

There is no automatic reconnect. After a disconnect the consumer decides whether
to call `start()` again (see `shared.client_utils.retry_start` for a
caller-driven retry loop). Each `start()` throws the old Connection away and
builds a new one, so a Session never has two connections alive.
"""

from typing import Callable
from loguru import logger

from vapor_chat.client.connection import Connection
from vapor_chat.shared import codec
from vapor_chat.shared.client_utils import make_session_stats, utc_now_iso
from vapor_chat.shared.config import settings
from vapor_chat.shared.errors import IdentityNotSet, NotConnected
from vapor_chat.shared.events import EventSink, SinkRef
from vapor_chat.shared.models import (
    ChatMessage,
    ConnectionState,
    DisconnectReason,
    Identity,
    Sender,
)

ConnectionFactory = Callable[..., Connection]


class Session:
    def __init__(
        self,
        sink: EventSink,
        url: str | None = None,
        connection_factory: ConnectionFactory = Connection,
        open_timeout: float | None = None,
    ):
        self.url = url or settings.CHAT_URL
        self.open_timeout = open_timeout
        self._sink = SinkRef(sink)
        self._connection_factory = connection_factory
        self._connection: Connection | None = None
        self._identity = Identity.unset()
        self._last_disconnect_reason: DisconnectReason | None = None
        self.stats = make_session_stats()

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def username(self) -> str | None:
        return self._identity.username

    @property
    def connection(self) -> Connection | None:
        return self._connection

    @property
    def state(self) -> ConnectionState:
        if self._connection is None:
            return ConnectionState.IDLE
        return self._connection.state

    @property
    def last_disconnect_reason(self) -> DisconnectReason | None:
        return self._last_disconnect_reason

    # ==========================
    # CONSUMER API
    # ==========================
    def set_username(self, name: str) -> None:
        """Legal at any time. The name is announced the next time a connection opens."""
        self._identity = Identity.of(name)

    def start(self) -> None:
        if not self._identity.is_set:
            raise IdentityNotSet("set a username before starting the session")

        current = self._connection
        if current is not None and current.state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            logger.debug(f"client_id={self.username} protocol=websocket event=start reason=already_live")
            return

        if current is not None:
            # Replace, never keep both.
            current.close()
            self.stats["reconnect_count"] += 1

        self._connection = self._connection_factory(
            self.url,
            self,
            client_id=self.username,
            open_timeout=self.open_timeout,
        )
        self._connection.connect()

    def send_message(self, text: str) -> ChatMessage:
        """Send a chat line. Returns the locally authored message for the caller's transcript."""
        if self._connection is None:
            raise NotConnected("session has not been started")
        self._connection.send(codec.encode_chat(text))
        self.stats["messages_sent"] += 1
        return ChatMessage(sender=Sender.SELF, content=text)

    def close(self) -> None:
        """Owner-initiated shutdown. The sink does not get disconnected() for this."""
        if self._connection is not None:
            self._connection.close()
            self._last_disconnect_reason = DisconnectReason.LOCAL_CLOSE

    # ==========================
    # CONNECTION OBSERVER
    # ==========================
    async def on_open(self) -> None:
        if not self._identity.is_set:
            return
        # Must stay the first thing queued on a fresh connection.
        self._connection.send(codec.encode_identity(self._identity.username))
        self.stats["connected_at"] = utc_now_iso()

    async def on_text(self, payload: str) -> None:
        self.stats["frames_received"] += 1
        frame = codec.decode(payload)
        if frame is None:
            self.stats["frames_dropped"] += 1
            return

        message = ChatMessage(sender=Sender.REMOTE, content=f"{frame.username}: {frame.message}")
        if await self._sink.deliver(message):
            self.stats["messages_delivered"] += 1
            self.stats["last_message_at"] = utc_now_iso()

    async def on_closed(self) -> None:
        reason = self._connection.close_reason if self._connection is not None else None
        self._last_disconnect_reason = reason
        logger.info(f"client_id={self.username} protocol=websocket event=disconnected reason={reason.value if reason else None}")
        await self._sink.disconnected()

