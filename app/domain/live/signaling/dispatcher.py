"""Dispatch of inbound signaling events.

Each handler takes the sending connection id and the raw event data, applies
its registry mutation, awaits any persistence write, and returns the outbound
messages to deliver. Handlers never touch the transport, so the whole protocol
can be exercised without a socket.

Flow per session:
- start-session: absent -> live (registry entry created, record marked live)
- join-session / leave-session: viewer membership changes
- webrtc-*: pairwise relay between the streamer and one viewer
- end-session or streamer disconnect: live -> absent (record marked ended)
"""

from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger
from pydantic import ValidationError

from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .registry import Session, SessionRegistry
from .relay import SignalingRelay
from .signaling_models import (
    EndSessionIn,
    JoinSessionIn,
    LeaveSessionIn,
    Outbound,
    RelayIn,
    SessionRole,
    SignalingEvent,
    StartSessionIn,
)
from .sync import LivenessSync

Handler = Callable[[str, dict[str, Any]], Awaitable[list[Outbound]]]


class SignalingDispatcher:
    def __init__(
        self,
        registry: SessionRegistry,
        relay: SignalingRelay,
        sync: LivenessSync,
    ) -> None:
        self.registry = registry
        self.relay = relay
        self.sync = sync
        self._handlers: dict[SignalingEvent, Handler] = {
            SignalingEvent.START_SESSION: self.handle_start_session,
            SignalingEvent.JOIN_SESSION: self.handle_join_session,
            SignalingEvent.LEAVE_SESSION: self.handle_leave_session,
            SignalingEvent.END_SESSION: self.handle_end_session,
            SignalingEvent.WEBRTC_OFFER: self._relay_handler(SignalingEvent.WEBRTC_OFFER),
            SignalingEvent.WEBRTC_ANSWER: self._relay_handler(SignalingEvent.WEBRTC_ANSWER),
            SignalingEvent.WEBRTC_ICE_CANDIDATE: self._relay_handler(
                SignalingEvent.WEBRTC_ICE_CANDIDATE
            ),
        }

    @property
    def events(self) -> frozenset[SignalingEvent]:
        return frozenset(self._handlers)

    async def dispatch(self, connection_id: str, event: str, data: Any) -> list[Outbound]:
        """Run the handler for `event` and return the messages it produced.

        Handler errors are turned into a failure event addressed only to the
        sending connection.
        """
        payload: dict[str, Any] = data if isinstance(data, dict) else {}
        stream_id = payload.get("streamId")

        try:
            kind = SignalingEvent(event)
        except ValueError:
            kind = None

        handler = self._handlers.get(kind) if kind is not None else None
        if handler is None:
            logger.warning("Unknown signaling event {!r} from {}", event, connection_id)
            return [
                self._failure(
                    connection_id,
                    SignalingEvent.SESSION_ERROR,
                    stream_id,
                    AppErrorCode.E_UNKNOWN_EVENT.value,
                    f"Unknown event: {event}",
                )
            ]

        try:
            return await handler(connection_id, payload)
        except ValidationError as exc:
            logger.warning("Invalid {} payload from {}: {}", event, connection_id, exc.errors())
            return [
                self._failure(
                    connection_id,
                    self._failure_event(kind, AppErrorCode.E_INVALID_REQUEST.value),
                    stream_id,
                    AppErrorCode.E_INVALID_REQUEST.value,
                    f"Invalid {event} payload",
                )
            ]
        except AppError as exc:
            logger.warning(
                "{} {} from {} failed: {} {} caller={}",
                event,
                stream_id,
                connection_id,
                exc.errcode,
                exc.errmesg,
                exc.caller_info,
            )
            return [
                self._failure(
                    connection_id,
                    self._failure_event(kind, exc.errcode),
                    stream_id,
                    exc.errcode,
                    exc.errmesg,
                )
            ]

    # ==================== HANDLERS ====================

    async def handle_start_session(self, connection_id: str, data: dict[str, Any]) -> list[Outbound]:
        params = StartSessionIn.model_validate(data)
        self.registry.create_session(
            params.stream_id,
            connection_id,
            params.stream_key,
            title=params.title,
            description=params.description,
        )

        # The session is already visible to joiners while this write is in flight
        await self.sync.on_start(params.stream_key)

        logger.info("Signaling session started: {}", params.stream_id)
        return [
            Outbound(
                target=connection_id,
                event=SignalingEvent.SESSION_STARTED,
                data={
                    "streamId": params.stream_id,
                    "success": True,
                    "message": "Stream started successfully",
                },
            )
        ]

    async def handle_join_session(self, connection_id: str, data: dict[str, Any]) -> list[Outbound]:
        params = JoinSessionIn.model_validate(data)
        session = self.registry.add_viewer(params.stream_id, connection_id)

        return [
            Outbound(
                target=connection_id,
                event=SignalingEvent.SESSION_JOINED,
                data={
                    "streamId": session.stream_id,
                    "streamerId": session.streamer_id,
                    "viewerCount": session.viewer_count,
                    "title": session.title,
                    "description": session.description,
                },
            ),
            Outbound(
                target=session.streamer_id,
                event=SignalingEvent.VIEWER_JOINED,
                data={
                    "viewerId": connection_id,
                    "viewerCount": session.viewer_count,
                },
            ),
        ]

    async def handle_leave_session(self, connection_id: str, data: dict[str, Any]) -> list[Outbound]:
        params = LeaveSessionIn.model_validate(data)
        session = self.registry.get_session(params.stream_id)
        if session is None:
            return []

        role = session.role_of(connection_id)
        if role == SessionRole.STREAMER:
            return await self._terminate(session)
        if role is None:
            return []

        self.registry.remove_viewer(params.stream_id, connection_id)
        return [self._viewer_left(session, connection_id)]

    async def handle_end_session(self, connection_id: str, data: dict[str, Any]) -> list[Outbound]:
        params = EndSessionIn.model_validate(data)
        session = self.registry.require_session(params.stream_id)

        if session.streamer_id != connection_id:
            raise AppError(
                errcode=AppErrorCode.E_SESSION_FORBIDDEN,
                errmesg=f"Only the streamer can end session {params.stream_id}",
                status_code=HttpStatusCode.FORBIDDEN,
            )
        if params.stream_key and params.stream_key != session.stream_key:
            logger.warning(
                "end-session for {} sent stream_key={} but session holds {}; using the session's key",
                params.stream_id,
                params.stream_key,
                session.stream_key,
            )

        return await self._terminate(session)

    def _relay_handler(self, event: SignalingEvent) -> Handler:
        async def handle(connection_id: str, data: dict[str, Any]) -> list[Outbound]:
            params = RelayIn.model_validate(data)
            message = self.relay.route(
                event,
                connection_id,
                params.stream_id,
                params.target_id,
                params.payload,
            )
            return [message] if message is not None else []

        return handle

    async def handle_disconnect(self, connection_id: str) -> list[Outbound]:
        """Tear down everything the connection was part of.

        A streamer's sessions are terminated; a viewer is detached and the
        streamer is told the new viewer count.
        """
        outbound: list[Outbound] = []
        for stream_id, _ in self.registry.find_sessions_by_connection(connection_id):
            # Earlier terminations await the store; re-read membership afterwards
            session = self.registry.get_session(stream_id)
            role = session.role_of(connection_id) if session else None
            if session is None or role is None:
                continue

            if role == SessionRole.STREAMER:
                logger.info("Streamer {} disconnected, ending session {}", connection_id, stream_id)
                outbound.extend(await self._terminate(session, exclude=connection_id))
            else:
                self.registry.remove_viewer(stream_id, connection_id)
                outbound.append(self._viewer_left(session, connection_id))

        return outbound

    # ==================== HELPERS ====================

    async def _terminate(self, session: Session, *, exclude: str | None = None) -> list[Outbound]:
        members = [m for m in session.members() if m != exclude]
        self.registry.remove_session(session.stream_id)

        await self.sync.on_end(session.stream_key)

        logger.info("Signaling session ended: {} ({} members notified)", session.stream_id, len(members))
        return [
            Outbound(
                target=member,
                event=SignalingEvent.SESSION_ENDED,
                data={"streamId": session.stream_id},
            )
            for member in members
        ]

    @staticmethod
    def _viewer_left(session: Session, viewer_id: str) -> Outbound:
        return Outbound(
            target=session.streamer_id,
            event=SignalingEvent.VIEWER_LEFT,
            data={
                "viewerId": viewer_id,
                "viewerCount": session.viewer_count,
            },
        )

    @staticmethod
    def _failure_event(kind: SignalingEvent, errcode: str) -> SignalingEvent:
        if errcode == AppErrorCode.E_SESSION_NOT_FOUND.value:
            return SignalingEvent.SESSION_NOT_FOUND
        if kind == SignalingEvent.START_SESSION:
            return SignalingEvent.SESSION_START_ERROR
        return SignalingEvent.SESSION_ERROR

    @staticmethod
    def _failure(
        connection_id: str,
        event: SignalingEvent,
        stream_id: Any,
        errcode: str,
        message: str,
    ) -> Outbound:
        return Outbound(
            target=connection_id,
            event=event,
            data={
                "streamId": stream_id,
                "errcode": errcode,
                "message": message,
            },
        )
