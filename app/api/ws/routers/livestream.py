"""Signaling socket for WebRTC livestreams."""

from fastapi import APIRouter, WebSocket

from app.api.ws.gateway import SignalingGateway

router = APIRouter()


@router.websocket("/ws/livestream")
async def livestream_socket(websocket: WebSocket):
    """Duplex signaling channel.

    Frames in both directions are ``{"event": <name>, "data": {...}}``. The first
    frame sent by the server is ``connected`` with the client's connection id.
    """
    gateway: SignalingGateway = websocket.app.state.signaling_gateway
    await gateway.serve(websocket)
