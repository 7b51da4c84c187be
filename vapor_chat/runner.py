"""
CLI entrypoint for Vapor Chat.
"""
import asyncio
import sys
import typer
from loguru import logger

from vapor_chat.client.console import HELP_TEXT, ConsoleSink, stdin_lines, stop_stdin_lines
from vapor_chat.client.session import Session
from vapor_chat.shared.client_utils import retry_start
from vapor_chat.shared.config import settings
from vapor_chat.shared.errors import IdentityNotSet, NotConnected

app = typer.Typer(help="Vapor Chat CLI")


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


async def run_chat(session: Session, sink: ConsoleSink) -> None:
    """Read lines from the terminal until /quit or EOF, routing them to the session."""
    lines = stdin_lines()
    try:
        session.start()
        while True:
            line = await lines.get()
            if line is None or line == "/quit":
                break
            if line == "/retry":
                try:
                    if not await retry_start(session):
                        sink.notice("Could not reconnect.", style="red")
                except IdentityNotSet:
                    sink.notice("Set a name first: /name <username>")
                continue
            if line.startswith("/name "):
                session.set_username(line[len("/name "):].strip())
                sink.notice(f"Username set to {session.username}. It is announced the next time a connection opens.")
                continue
            if not line.strip():
                continue
            try:
                sink.show(session.send_message(line))
            except NotConnected:
                sink.notice("Not connected. /retry to try again, /quit to kill.")
    finally:
        stop_stdin_lines()
        session.close()
        if session.connection is not None:
            await session.connection.wait_closed()


@app.command()
def chat(
    username: str = typer.Option(None, help="Name announced to the room"),
    url: str = typer.Option(settings.CHAT_URL, help="Chat endpoint, e.g. ws://127.0.0.1:8000/chat"),
    log_level: str = typer.Option("WARNING", help="Log level for transport logs on stderr"),
):
    """Join a chat room from the terminal."""
    configure_logging(log_level)
    if not username:
        username = typer.prompt("What's your GitHub name?")

    sink = ConsoleSink()
    session = Session(sink, url=url)
    session.set_username(username)
    sink.notice(HELP_TEXT, style="dim")

    try:
        asyncio.run(run_chat(session, sink))
    except KeyboardInterrupt:
        pass


@app.command()
def relay(port: int = typer.Option(settings.PORT, help="Port to listen on")):
    """Start the development relay server using Uvicorn."""
    import uvicorn
    configure_logging(settings.LOG_LEVEL)
    typer.echo(f"Starting relay on port {port} (ws://127.0.0.1:{port}/chat)...")
    uvicorn.run("vapor_chat.server.main:app", host="0.0.0.0", port=port, log_level=settings.LOG_LEVEL.lower())


@app.command()
def stats(port: int = typer.Option(settings.PORT, help="Relay port")):
    """Query a running relay for live stats."""
    import httpx
    resp = httpx.get(f"http://127.0.0.1:{port}/stats")
    typer.echo(resp.json())


if __name__ == "__main__":
    app()
