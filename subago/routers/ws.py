"""WebSocket entry point. All protocol handling lives in the realtime gateway."""

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from subago.realtime.gateway import gateway

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def auction_socket(websocket: WebSocket, token: str = Query(default="")):
    client = await gateway.connect(websocket, token)
    if client is None:
        return

    try:
        # The gateway closes kicked duplicates itself; stop reading once it has
        while websocket.application_state == WebSocketState.CONNECTED:
            raw = await websocket.receive_text()
            await gateway.handle_message(client.socket_id, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await gateway.disconnect(client.socket_id)
