"""
MODULE OVERVIEW:
One WebSocket connection attempt to the chat endpoint.

WHAT IS HAPPENING HERE:
We use the `websockets` library. A WebSocket connection needs two loops over the
same socket: one to read incoming frames, one to write outgoing ones. The read
loop runs in the connection's task and reports every text frame to the observer,
one at a time, in the order they arrived. The write loop drains an asyncio.Queue
so `send()` never blocks and frames leave in the order they were queued.

`connect()`, `send()` and `close()` are plain (non-async) methods: they schedule
work and return immediately. Everything else surfaces later through the
observer's `on_open`, `on_text` and `on_closed`.

A Connection never retries. Once it is CLOSED it is spent; reconnecting means
building a new one (the Session does that).
"""

import asyncio
import websockets
from loguru import logger

from vapor_chat.shared.config import settings
from vapor_chat.shared.errors import NotConnected
from vapor_chat.shared.events import ConnectionObserver
from vapor_chat.shared.models import ConnectionState, DisconnectReason


class Connection:
    protocol_name: str = "websocket"

    def __init__(
        self,
        url: str,
        observer: ConnectionObserver,
        client_id: str = "anonymous",
        open_timeout: float | None = None,
    ):
        self.url = url
        self.client_id = client_id
        self.open_timeout = settings.HANDSHAKE_TIMEOUT_S if open_timeout is None else open_timeout
        self._observer = observer

        self._state = ConnectionState.IDLE
        self._close_reason: DisconnectReason | None = None
        self._owner_closed = False

        self._task: asyncio.Task | None = None
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        # Set once the handshake has resolved, either way.
        self._settled = asyncio.Event()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def close_reason(self) -> DisconnectReason | None:
        return self._close_reason

    # ==========================
    # PUBLIC API
    # ==========================
    def connect(self) -> None:
        """Start the handshake in the background. Must be called from a running event loop."""
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            return
        if self._state is ConnectionState.CLOSED:
            logger.warning(f"client_id={self.client_id} protocol={self.protocol_name} event=connect reason=spent")
            return

        self._state = ConnectionState.CONNECTING
        self._task = asyncio.get_running_loop().create_task(self._run())

    def send(self, text: str | bytes) -> None:
        """
        Queue one outbound text frame. Raises NotConnected unless OPEN, and
        UnicodeError if the payload is not valid UTF-8 text.
        """
        if self._state is not ConnectionState.OPEN:
            raise NotConnected(f"cannot send while connection is {self._state.value}")
        if isinstance(text, (bytes, bytearray)):
            # websockets sends bytes as a binary frame; the protocol is text only
            text = bytes(text).decode("utf-8")
        else:
            # Lone surrogates would otherwise fail inside the send loop and drop the socket.
            text.encode("utf-8")
        self._outbox.put_nowait(text)

    def close(self) -> None:
        """Close from any state. No observer callback fires after this returns."""
        self._owner_closed = True
        if self._state is ConnectionState.CLOSED:
            return
        self._state = ConnectionState.CLOSED
        self._close_reason = DisconnectReason.LOCAL_CLOSE
        self._settled.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.info(f"client_id={self.client_id} protocol={self.protocol_name} event=disconnect reason=local_close")

    async def wait_open(self, timeout: float | None = None) -> bool:
        """Wait for the handshake to resolve. True only if the connection is OPEN."""
        try:
            await asyncio.wait_for(self._settled.wait(), timeout)
        except asyncio.TimeoutError:
            pass
        return self._state is ConnectionState.OPEN

    async def wait_closed(self) -> None:
        """Wait for the I/O task to finish. Do not call from inside an observer callback."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    # ==========================
    # I/O TASK
    # ==========================
    async def _run(self) -> None:
        try:
            ws = await websockets.connect(
                self.url,
                open_timeout=self.open_timeout,
                ping_interval=settings.WS_PING_INTERVAL_S,
            )
        except asyncio.CancelledError:
            return
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as e:
            logger.warning(f"client_id={self.client_id} protocol={self.protocol_name} event=error reason='handshake failed: {e}'")
            await self._finish(DisconnectReason.HANDSHAKE_FAILED)
            return

        self._state = ConnectionState.OPEN
        self._settled.set()
        logger.info(f"client_id={self.client_id} protocol={self.protocol_name} event=connect reason=open")

        reason = DisconnectReason.REMOTE_CLOSED
        sender = asyncio.create_task(self._send_loop(ws))
        try:
            await self._emit("on_open")
            async for message in ws:
                if isinstance(message, bytes):
                    logger.debug(f"client_id={self.client_id} protocol={self.protocol_name} event=drop reason=binary_frame")
                    continue
                await self._emit("on_text", message)
        except asyncio.CancelledError:
            reason = DisconnectReason.LOCAL_CLOSE
        except websockets.WebSocketException as e:
            logger.warning(f"client_id={self.client_id} protocol={self.protocol_name} event=error reason='{e}'")
            reason = DisconnectReason.TRANSPORT_ERROR
        finally:
            # No send() may slip into the queue while the socket is going away.
            self._state = ConnectionState.CLOSED
            sender.cancel()
            await ws.close()

        await self._finish(reason)

    async def _send_loop(self, ws) -> None:
        while True:
            payload = await self._outbox.get()
            try:
                await ws.send(payload)
            except websockets.ConnectionClosed:
                # The read loop sees the same close and reports it.
                return

    async def _finish(self, reason: DisconnectReason) -> None:
        self._state = ConnectionState.CLOSED
        self._settled.set()
        if self._owner_closed:
            return
        self._close_reason = reason
        logger.info(f"client_id={self.client_id} protocol={self.protocol_name} event=disconnect reason={reason.value}")
        await self._emit("on_closed")

    async def _emit(self, callback: str, *args) -> None:
        if self._owner_closed:
            return
        try:
            await getattr(self._observer, callback)(*args)
        except Exception as e:
            logger.error(f"Error in observer during {callback}: {e}")
