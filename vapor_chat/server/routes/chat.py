"""
MODULE OVERVIEW:
The relay's WebSocket route.

WHAT IS HAPPENING HERE:
Upgrades the HTTP request to a WebSocket and feeds every text frame to the
RelayManager until the client goes away. Binary frames are not part of the
chat protocol and are skipped.
"""
from fastapi import APIRouter, WebSocket
from loguru import logger

from vapor_chat.server.connection_manager import manager, new_connection_id

router = APIRouter()

@router.websocket("/chat")
async def chat_endpoint(websocket: WebSocket):
    conn_id = new_connection_id()
    await manager.connect(conn_id, websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text_data = message.get("text")
            if text_data is None:
                logger.debug(f"client_id={conn_id} protocol=websocket event=drop reason=binary_frame")
                continue
            logger.debug(f"WS client {conn_id} sent: {text_data}")
            await manager.handle_frame(conn_id, text_data)
    finally:
        manager.disconnect(conn_id)
