"""
MODULE OVERVIEW:
The two callback contracts of the chat transport.

WHAT IS HAPPENING HERE:
A `Connection` reports to a `ConnectionObserver` (the `Session`), and the
`Session` reports to an `EventSink` (a UI controller, the terminal console, a test
double). Both are plain protocols: anything with the right async methods works.

The Session does not own its sink. `SinkRef` holds it weakly, so a sink that has
been torn down simply stops receiving events instead of being kept alive or
causing errors.
"""

import weakref
from typing import Protocol
from loguru import logger

from .models import ChatMessage


class EventSink(Protocol):
    async def deliver(self, message: ChatMessage) -> None: ...

    async def disconnected(self) -> None: ...


class ConnectionObserver(Protocol):
    async def on_open(self) -> None: ...

    async def on_text(self, payload: str) -> None: ...

    async def on_closed(self) -> None: ...


class SinkRef:
    """
    A non-owning handle on an EventSink.
    Errors raised by the sink are logged and swallowed so one bad callback
    cannot kill the connection's reader loop.
    """
    def __init__(self, sink: EventSink):
        self._ref = weakref.ref(sink)

    async def deliver(self, message: ChatMessage) -> bool:
        sink = self._ref()
        if sink is None:
            return False
        try:
            await sink.deliver(message)
        except Exception as e:
            logger.error(f"Error in sink during deliver: {e}")
            return False
        return True

    async def disconnected(self) -> bool:
        sink = self._ref()
        if sink is None:
            return False
        try:
            await sink.disconnected()
        except Exception as e:
            logger.error(f"Error in sink during disconnected: {e}")
            return False
        return True
