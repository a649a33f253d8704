from __future__ import annotations

from collections import defaultdict
from typing import Any, Protocol

import structlog
from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from helpdesk.models import Message
from helpdesk.utils.time import isoformat

logger = structlog.get_logger(__name__)


class Broadcaster(Protocol):
    async def broadcast(self, room: str, event: str, payload: dict[str, Any]) -> None: ...


def ticket_room(ticket_id: str) -> str:
    return f"ticket_{ticket_id}"


AGENTS_ROOM = "agents"


def message_event(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "ticket_id": message.ticket_id,
        "sender_id": message.sender_id,
        "sender_type": message.sender_type,
        "content": message.content,
        "message_type": message.message_type,
        "created_at": isoformat(message.created_at),
    }


class ConnectionManager:
    """WebSocket rooms. Delivery is best effort; dead sockets are dropped."""

    def __init__(self) -> None:
        self.rooms: dict[str, set[WebSocket]] = defaultdict(set)

    async def connect(self, websocket: WebSocket, room: str) -> None:
        await websocket.accept()
        self.rooms[room].add(websocket)
        logger.info("realtime_joined", room=room, members=len(self.rooms[room]))

    def disconnect(self, websocket: WebSocket, room: str) -> None:
        members = self.rooms.get(room)
        if not members:
            return
        members.discard(websocket)
        if not members:
            self.rooms.pop(room, None)

    async def broadcast(self, room: str, event: str, payload: dict[str, Any]) -> None:
        members = list(self.rooms.get(room, ()))
        if not members:
            return
        message = {"event": event, "data": jsonable_encoder(payload)}
        for websocket in members:
            try:
                await websocket.send_json(message)
            except Exception as exc:
                logger.warning("realtime_send_failed", room=room, event=event, error=str(exc))
                self.disconnect(websocket, room)
