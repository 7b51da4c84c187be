"""Shared test fixtures for vapor-chat."""

import asyncio
import socket

import pytest
import pytest_asyncio
import websockets

from vapor_chat.shared.errors import NotConnected
from vapor_chat.shared.models import ConnectionState, DisconnectReason


class RecordingObserver:
    """ConnectionObserver that remembers every callback in order."""

    def __init__(self):
        self.events: list = []
        self.texts: asyncio.Queue[str] = asyncio.Queue()
        self.opened = asyncio.Event()
        self.closed = asyncio.Event()

    async def on_open(self):
        self.events.append("open")
        self.opened.set()

    async def on_text(self, payload):
        self.events.append(("text", payload))
        await self.texts.put(payload)

    async def on_closed(self):
        self.events.append("closed")
        self.closed.set()


class RecordingSink:
    """EventSink that keeps delivered messages and counts disconnects."""

    def __init__(self):
        self.messages = []
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.disconnects = 0
        self.disconnected_event = asyncio.Event()

    async def deliver(self, message):
        self.messages.append(message)
        await self.inbox.put(message)

    async def disconnected(self):
        self.disconnects += 1
        self.disconnected_event.set()


class FakeConnection:
    """Stands in for Connection; tests drive its lifecycle by hand."""

    def __init__(self, url, observer, client_id="anonymous", open_timeout=None, outcome=None):
        self.url = url
        self.observer = observer
        self.client_id = client_id
        self.open_timeout = open_timeout
        self.outcome = outcome
        self.state = ConnectionState.IDLE
        self.close_reason = None
        self.sent: list[str] = []
        self.close_calls = 0

    def connect(self):
        if self.state is not ConnectionState.IDLE:
            return
        self.state = ConnectionState.CONNECTING
        if self.outcome is True:
            self.state = ConnectionState.OPEN
        elif self.outcome is False:
            self.state = ConnectionState.CLOSED
            self.close_reason = DisconnectReason.HANDSHAKE_FAILED

    def send(self, text):
        if self.state is not ConnectionState.OPEN:
            raise NotConnected(f"cannot send while connection is {self.state.value}")
        self.sent.append(text.decode("utf-8") if isinstance(text, bytes) else text)

    def close(self):
        self.close_calls += 1
        if self.state is not ConnectionState.CLOSED:
            self.state = ConnectionState.CLOSED
            self.close_reason = DisconnectReason.LOCAL_CLOSE

    async def wait_open(self, timeout=None):
        return self.state is ConnectionState.OPEN

    async def wait_closed(self):
        pass

    async def open(self):
        self.state = ConnectionState.OPEN
        await self.observer.on_open()

    async def drop(self, reason=DisconnectReason.REMOTE_CLOSED):
        self.state = ConnectionState.CLOSED
        self.close_reason = reason
        await self.observer.on_closed()


class FakeConnectionFactory:
    """Builds FakeConnections, handing out queued handshake outcomes in order."""

    def __init__(self, outcomes=None):
        self.created: list[FakeConnection] = []
        self.outcomes = list(outcomes or [])

    def __call__(self, url, observer, client_id="anonymous", open_timeout=None):
        outcome = self.outcomes.pop(0) if self.outcomes else None
        conn = FakeConnection(url, observer, client_id=client_id, open_timeout=open_timeout, outcome=outcome)
        self.created.append(conn)
        return conn

    @property
    def last(self) -> FakeConnection:
        return self.created[-1]


class FakeChatServer:
    """In-process WebSocket server that records what clients send."""

    def __init__(self):
        self.connections = []
        self.inbox: asyncio.Queue[str] = asyncio.Queue()
        self.connected = asyncio.Event()
        self.port: int | None = None

    @property
    def url(self) -> str:
        return f"ws://127.0.0.1:{self.port}/chat"

    async def handler(self, ws, *args):
        self.connections.append(ws)
        self.connected.set()
        try:
            async for message in ws:
                await self.inbox.put(message)
        except websockets.ConnectionClosed:
            pass

    async def first_connection(self, timeout: float = 2.0):
        await asyncio.wait_for(self.connected.wait(), timeout)
        return self.connections[0]

    async def next_frame(self, timeout: float = 2.0) -> str:
        return await asyncio.wait_for(self.inbox.get(), timeout)


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def fake_connections() -> FakeConnectionFactory:
    return FakeConnectionFactory()


@pytest_asyncio.fixture
async def chat_server():
    server = FakeChatServer()
    async with websockets.serve(server.handler, "127.0.0.1", 0) as ws_server:
        server.port = list(ws_server.sockets)[0].getsockname()[1]
        yield server


@pytest_asyncio.fixture
async def silent_server():
    """Accepts TCP connections but never answers the WebSocket handshake."""
    writers = []

    async def handle(reader, writer):
        writers.append(writer)
        await reader.read()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        yield f"ws://127.0.0.1:{port}/chat"
    finally:
        for writer in writers:
            writer.close()
        server.close()
        await server.wait_closed()


@pytest.fixture
def refused_url() -> str:
    """A URL on a port nothing listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return f"ws://127.0.0.1:{port}/chat"
