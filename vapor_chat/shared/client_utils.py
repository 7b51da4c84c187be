import asyncio
import random
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from loguru import logger

from vapor_chat.shared.config import settings

if TYPE_CHECKING:
    from vapor_chat.client.session import Session


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def make_session_stats() -> dict:
    """
    Returns a fresh stats dictionary with zeroed counters.
    Every Session calls this once in __init__.
    Keys: frames_received, frames_dropped, messages_delivered, messages_sent,
          reconnect_count, retry_count, last_message_at, connected_at.
    """
    return {
        "frames_received": 0,
        "frames_dropped": 0,
        "messages_delivered": 0,
        "messages_sent": 0,
        "reconnect_count": 0,
        "retry_count": 0,
        "last_message_at": None,
        "connected_at": None,
    }


def backoff_delay(attempt: int, base_delay_s: float, max_delay_s: float) -> float:
    """Capped exponential delay for the given 1-based attempt, plus up to 10% jitter."""
    delay = min(base_delay_s * (2 ** (attempt - 1)), max_delay_s)
    return delay + random.uniform(0, delay * 0.1)


async def retry_start(
    session: "Session",
    attempts: int | None = None,
    base_delay_s: float | None = None,
    max_delay_s: float | None = None,
) -> bool:
    """
    Calls `session.start()` until a connection opens or `attempts` run out.

    This is the caller's retry loop, never the Session's: nothing reconnects
    unless someone awaits this. Each failed attempt still reaches the sink as a
    `disconnected()`. Returns True once a connection is OPEN.
    """
    attempts = settings.RETRY_ATTEMPTS if attempts is None else attempts
    base_delay_s = settings.RETRY_BASE_DELAY_S if base_delay_s is None else base_delay_s
    max_delay_s = settings.RETRY_MAX_DELAY_S if max_delay_s is None else max_delay_s

    for attempt in range(1, attempts + 1):
        session.start()
        if await session.connection.wait_open():
            return True
        if attempt == attempts:
            break

        delay = backoff_delay(attempt, base_delay_s, max_delay_s)
        session.stats["retry_count"] += 1
        logger.warning(
            f"Protocol websocket Client {session.username} Attempt {attempt} "
            f"Delay {delay:.2f}s Reason {session.last_disconnect_reason}"
        )
        await asyncio.sleep(delay)

    logger.error(f"Protocol websocket Client {session.username} gave up after {attempts} attempts")
    return False
