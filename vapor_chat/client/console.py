"""
MODULE OVERVIEW:
A terminal consumer for a Session.

WHAT IS HAPPENING HERE:
`ConsoleSink` is the smallest possible EventSink: it prints each delivered
message as one line with Rich and, on disconnect, tells the user how to retry
or quit. `stdin_lines()` turns standard input into an asyncio.Queue of lines
that the CLI loop awaits alongside the connection.
"""

import asyncio
import os
import stat
import sys
from datetime import datetime
from rich.console import Console
from rich.markup import escape

from vapor_chat.shared.models import ChatMessage, Sender

SENDER_STYLE = {
    Sender.SELF: "green",
    Sender.REMOTE: "cyan",
}

HELP_TEXT = "Type to chat. Commands: /retry, /name <username>, /quit"


class ConsoleSink:
    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self.transcript: list[ChatMessage] = []

    def show(self, message: ChatMessage):
        self.transcript.append(message)
        ts = (message.timestamp or datetime.now()).strftime("%H:%M:%S")
        style = SENDER_STYLE[message.sender]
        content = message.content if message.sender is Sender.REMOTE else f"me: {message.content}"
        self.console.print(f"[dim]{ts}[/] [{style}]{escape(content)}[/]", highlight=False)

    def notice(self, text: str, style: str = "yellow"):
        self.console.print(f"[{style}]{escape(text)}[/]")

    async def deliver(self, message: ChatMessage) -> None:
        self.show(message)

    async def disconnected(self) -> None:
        self.notice("Disconnected. /retry to try again, /quit to kill.", style="red bold")


# Whichever reader stdin_lines() started; stop_stdin_lines() undoes it.
_reader_fd: int | None = None
_pump_task: asyncio.Task | None = None


def stdin_lines() -> asyncio.Queue:
    """
    Reads stdin from the event loop and queues one str per line.
    None is queued at EOF. Call `stop_stdin_lines()` when done.

    Terminals and pipes are watched with `loop.add_reader`. epoll cannot watch a
    regular file (`vapor-chat chat < script.txt`), so those are read line by line
    in the default executor instead.
    """
    global _reader_fd, _pump_task
    loop = asyncio.get_running_loop()
    stream = sys.stdin
    fd = stream.fileno()
    queue: asyncio.Queue[str | None] = asyncio.Queue()

    if stat.S_ISREG(os.fstat(fd).st_mode):
        _pump_task = loop.create_task(_pump_file(stream, queue))
        return queue

    buffer = b""

    def on_readable():
        nonlocal buffer
        chunk = os.read(fd, 4096)
        if not chunk:
            loop.remove_reader(fd)
            if buffer:
                queue.put_nowait(buffer.decode("utf-8", errors="replace").rstrip("\r"))
            queue.put_nowait(None)
            return
        buffer += chunk
        while b"\n" in buffer:
            line, buffer = buffer.split(b"\n", 1)
            queue.put_nowait(line.decode("utf-8", errors="replace").rstrip("\r"))

    loop.add_reader(fd, on_readable)
    _reader_fd = fd
    return queue


async def _pump_file(stream, queue: asyncio.Queue) -> None:
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, stream.readline)
        if not line:
            queue.put_nowait(None)
            return
        queue.put_nowait(line.rstrip("\r\n"))


def stop_stdin_lines() -> None:
    global _reader_fd, _pump_task
    if _pump_task is not None:
        _pump_task.cancel()
        _pump_task = None
    if _reader_fd is not None:
        asyncio.get_running_loop().remove_reader(_reader_fd)
        _reader_fd = None
