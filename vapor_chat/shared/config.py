"""
MODULE OVERVIEW:
Application-wide configuration using Pydantic Settings.
Where it fits: the client core takes explicit arguments; these values are only the
defaults it falls back to, and what the CLI and the relay server read.

WHAT IS HAPPENING HERE:
Every timing the transport depends on lives here instead of deep inside the
connection code. Override any of them with an environment variable or a `.env`
file (e.g. `CHAT_URL=ws://127.0.0.1:8000/chat`).
"""
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Chat endpoint
    CHAT_URL: str = "wss://vapor-chat.herokuapp.com/chat"

    # WebSocket
    HANDSHAKE_TIMEOUT_S: float = 10.0
    WS_PING_INTERVAL_S: float | None = 20.0

    # Caller-initiated retry
    RETRY_ATTEMPTS: int = 5
    RETRY_BASE_DELAY_S: float = 1.0
    RETRY_MAX_DELAY_S: float = 32.0

    class Config:
        env_file = ".env"
        # Tolerate missing env vars to allow easy out-of-the-box execution
        env_file_encoding = 'utf-8'
        extra = 'ignore'

settings = Settings()
