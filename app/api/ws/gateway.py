"""Connection gateway for the signaling socket.

Accepts WebSocket connections, applies the origin policy, assigns each client a
connection id, decodes ``{"event", "data"}`` frames and hands them to the
dispatcher, then delivers whatever the dispatcher returns. Each connection runs
in its own task, so a slow persistence write only stalls that connection.
"""

from __future__ import annotations

from uuid import uuid4

import orjson
from fastapi import WebSocket, WebSocketDisconnect, status
from loguru import logger

from app.app_config import get_app_environ_config
from app.domain.live.signaling.dispatcher import SignalingDispatcher
from app.domain.live.signaling.origin_policy import OriginPolicy
from app.domain.live.signaling.registry import SessionRegistry
from app.domain.live.signaling.relay import SignalingRelay
from app.domain.live.signaling.signaling_models import Outbound, SignalingEvent
from app.domain.live.signaling.sync import LivenessSync
from app.services.integrations.supabase_store import SupabaseStore
from app.utils.app_errors import AppErrorCode


class ConnectionManager:
    """Tracks open sockets by connection id."""

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def register(self, websocket: WebSocket) -> str:
        connection_id = uuid4().hex[:20]
        self._connections[connection_id] = websocket
        return connection_id

    def unregister(self, connection_id: str) -> None:
        self._connections.pop(connection_id, None)

    async def send(self, connection_id: str, event: SignalingEvent, data: dict) -> bool:
        """Send one frame. Returns False when the target is gone."""
        websocket = self._connections.get(connection_id)
        if websocket is None:
            logger.debug("Dropped {} for disconnected {}", event, connection_id)
            return False

        try:
            await websocket.send_text(orjson.dumps({"event": event.value, "data": data}).decode())
        except (WebSocketDisconnect, RuntimeError) as exc:
            logger.debug("Dropped {} for {}: {}", event, connection_id, exc)
            return False
        return True

    async def deliver(self, messages: list[Outbound]) -> int:
        delivered = 0
        for message in messages:
            if await self.send(message.target, message.event, message.data):
                delivered += 1
        return delivered


class SignalingGateway:
    def __init__(
        self,
        dispatcher: SignalingDispatcher,
        origin_policy: OriginPolicy,
        connections: ConnectionManager | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.origin_policy = origin_policy
        self.connections = connections if connections is not None else ConnectionManager()

    @property
    def registry(self) -> SessionRegistry:
        return self.dispatcher.registry

    async def serve(self, websocket: WebSocket) -> None:
        origin = websocket.headers.get("origin")
        if not self.origin_policy.is_allowed(origin):
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        connection_id = self.connections.register(websocket)
        logger.info("Signaling client connected: {} origin={}", connection_id, origin)

        await self.connections.send(
            connection_id,
            SignalingEvent.CONNECTED,
            {"connectionId": connection_id},
        )

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes")
                await self.handle_frame(connection_id, raw)
        except WebSocketDisconnect as exc:
            logger.info("Signaling client disconnected: {} code={}", connection_id, exc.code)
        finally:
            self.connections.unregister(connection_id)
            outbound = await self.dispatcher.handle_disconnect(connection_id)
            await self.connections.deliver(outbound)

    async def handle_frame(self, connection_id: str, raw: str | bytes | None) -> None:
        try:
            frame = orjson.loads(raw) if raw else None
        except orjson.JSONDecodeError:
            frame = None

        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            logger.warning("Malformed signaling frame from {}", connection_id)
            await self.connections.send(
                connection_id,
                SignalingEvent.SESSION_ERROR,
                {
                    "streamId": None,
                    "errcode": AppErrorCode.E_INVALID_REQUEST.value,
                    "message": 'Frames must be JSON objects of the form {"event": ..., "data": {...}}',
                },
            )
            return

        event = frame["event"]
        logger.debug("Signaling {} from {}", event, connection_id)

        try:
            outbound = await self.dispatcher.dispatch(connection_id, event, frame.get("data"))
        except Exception:
            logger.exception("Error handling signaling event {} from {}", event, connection_id)
            data = frame.get("data")
            await self.connections.send(
                connection_id,
                SignalingEvent.SESSION_ERROR,
                {
                    "streamId": data.get("streamId") if isinstance(data, dict) else None,
                    "errcode": AppErrorCode.E_INTERNAL_ERROR.value,
                    "message": "Internal error",
                },
            )
            return

        await self.connections.deliver(outbound)


def build_signaling_gateway(
    store: SupabaseStore,
    *,
    registry: SessionRegistry | None = None,
    origin_policy: OriginPolicy | None = None,
) -> SignalingGateway:
    cfg = get_app_environ_config()
    registry = registry if registry is not None else SessionRegistry()
    connections = ConnectionManager()
    dispatcher = SignalingDispatcher(
        registry=registry,
        relay=SignalingRelay(registry, is_connected=connections.__contains__),
        sync=LivenessSync(store, cfg.LIVESTREAM_TABLE),
    )
    return SignalingGateway(
        dispatcher=dispatcher,
        origin_policy=origin_policy or OriginPolicy.from_config(cfg),
        connections=connections,
    )
