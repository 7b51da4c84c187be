"""
MODULE OVERVIEW:
The relay's state registry.

WHAT IS HAPPENING HERE:
Every open chat socket is held here under a unique connection id. A socket joins
the room once it announces a username; from then on each chat frame it sends is
re-broadcast to everybody else as {"username": ..., "message": ...}.
Anything that is not a well-formed frame for the socket's stage is ignored, the
same tolerance the client applies on its side.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict
from fastapi.websockets import WebSocket
from loguru import logger
from pydantic import ValidationError

from vapor_chat.shared.codec import ChatFrame, IdentityFrame, encode_relayed
from vapor_chat.shared.models import RelayStats


def new_connection_id() -> str:
    """A unique socket key like 'conn-<32 hex chars>'."""
    return f"conn-{uuid.uuid4().hex}"


class RelayManager:
    def __init__(self):
        self.sockets: Dict[str, WebSocket] = {}
        # Only sockets that have announced themselves appear here.
        self.usernames: Dict[str, str] = {}

        self.total_messages_relayed = 0
        self.startup_time = datetime.now(timezone.utc)

    async def connect(self, conn_id: str, websocket: WebSocket):
        await websocket.accept()
        self.sockets[conn_id] = websocket
        logger.info(f"client_id={conn_id} protocol=websocket event=connect reason=accepted")

    def disconnect(self, conn_id: str):
        if conn_id in self.sockets:
            del self.sockets[conn_id]
            name = self.usernames.pop(conn_id, None)
            logger.info(f"client_id={conn_id} protocol=websocket event=disconnect reason=cleanup username={name}")

    async def handle_frame(self, conn_id: str, text: str):
        if conn_id not in self.usernames:
            try:
                identity = IdentityFrame.model_validate_json(text)
            except ValidationError:
                logger.debug(f"client_id={conn_id} protocol=websocket event=drop reason=expected_identity")
                return
            self.usernames[conn_id] = identity.username
            logger.info(f"client_id={conn_id} protocol=websocket event=identify username={identity.username}")
            return

        try:
            chat = ChatFrame.model_validate_json(text)
        except ValidationError:
            logger.debug(f"client_id={conn_id} protocol=websocket event=drop reason=expected_message")
            return
        await self.broadcast(conn_id, chat.message)

    async def broadcast(self, from_id: str, message: str):
        payload = encode_relayed(self.usernames[from_id], message).decode("utf-8")
        self.total_messages_relayed += 1

        disconnected = []
        for conn_id in list(self.usernames):
            ws = self.sockets.get(conn_id)
            if conn_id == from_id or ws is None:
                continue
            try:
                await ws.send_text(payload)
            except Exception as e:
                logger.warning(f"client_id={conn_id} protocol=websocket event=error reason='{e}'")
                disconnected.append(conn_id)

        for conn_id in disconnected:
            self.disconnect(conn_id)

    def get_stats(self) -> RelayStats:
        return RelayStats(
            active_sockets=len(self.sockets),
            members=sorted(self.usernames.values()),
            total_messages_relayed=self.total_messages_relayed,
            uptime_s=(datetime.now(timezone.utc) - self.startup_time).total_seconds(),
            server_time=datetime.now(timezone.utc),
        )

# Global singleton instance
manager = RelayManager()
