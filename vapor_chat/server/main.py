"""
MODULE OVERVIEW:
The development relay: a FastAPI app that speaks the chat wire protocol.

WHAT IS HAPPENING HERE:
Point a client at ws://127.0.0.1:<PORT>/chat to try the transport without the
hosted endpoint. The relay only broadcasts; it keeps no history.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from loguru import logger

from vapor_chat import __version__
from vapor_chat.server.connection_manager import manager
from vapor_chat.server.routes import chat


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Vapor Chat relay starting up...")
    yield
    logger.info(f"Relay shutting down. {manager.total_messages_relayed} messages relayed.")


app = FastAPI(
    title="Vapor Chat Relay",
    description="Broadcast relay for the Vapor Chat wire protocol",
    version=__version__,
    lifespan=lifespan
)

app.include_router(chat.router, tags=["Chat"])

@app.get("/healthz", tags=["Ops"])
async def health_check():
    return {"status": "ok"}

@app.get("/stats", tags=["Ops"])
async def get_stats():
    return manager.get_stats()
