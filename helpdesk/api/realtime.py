from __future__ import annotations

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from helpdesk.services.realtime import AGENTS_ROOM, ticket_room

router = APIRouter(tags=["realtime"])


async def _serve(websocket: WebSocket, room: str) -> None:
    manager = websocket.app.state.services.realtime
    await manager.connect(websocket, room)
    try:
        while True:
            # Clients only listen; inbound frames are keepalives.
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket, room)


@router.websocket("/ws/tickets/{ticket_id}")
async def ticket_socket(websocket: WebSocket, ticket_id: str) -> None:
    await _serve(websocket, ticket_room(ticket_id))


@router.websocket("/ws/agents")
async def agents_socket(websocket: WebSocket) -> None:
    await _serve(websocket, AGENTS_ROOM)
