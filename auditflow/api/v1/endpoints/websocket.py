"""WebSocket endpoint: single /ws that uses the connection manager from app.state.

Clients identify with ?user_id=...; the connection then receives every
real-time event published on that user's channel.
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter()


async def _reject_websocket(websocket: WebSocket, reason: str, code: int = 1008) -> None:
    """Accept then immediately close with code/reason so client gets a proper close frame."""
    await websocket.accept()
    await websocket.close(code=code, reason=reason)


@router.websocket("")
async def websocket_endpoint(websocket: WebSocket):
    manager = websocket.app.state.ws_manager
    user_id = websocket.query_params.get("user_id")
    if not user_id:
        await _reject_websocket(websocket, "Missing user_id")
        return
    await manager.connect(websocket, user_id)
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket)
