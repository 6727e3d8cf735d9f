"""Pairwise relay of WebRTC negotiation messages."""

from collections.abc import Callable
from typing import Any

from loguru import logger

from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .registry import SessionRegistry
from .signaling_models import RELAY_EVENTS, RELAY_PAYLOAD_FIELDS, Outbound, SignalingEvent


class SignalingRelay:
    """Routes offer/answer/ICE messages between the two ends of a peer connection.

    Both ends must be participants of the named session and one of them must be
    its streamer. Payloads are passed through untouched.

    A target that has already gone away (socket closed, or a viewer that left
    the session) is dropped silently: negotiation messages still in flight when
    a peer leaves are expected.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        is_connected: Callable[[str], bool] | None = None,
    ) -> None:
        self.registry = registry
        self.is_connected = is_connected

    def _target_connected(self, target_id: str) -> bool:
        return self.is_connected is None or self.is_connected(target_id)

    def route(
        self,
        event: SignalingEvent,
        sender_id: str,
        stream_id: str,
        target_id: str,
        payload: Any,
    ) -> Outbound | None:
        """Build the message for `target_id`, or None when the target is gone.

        Raises:
            AppError: E_SESSION_NOT_FOUND if the session is gone,
                E_NOT_PARTICIPANT if either end is not a member of the session
                or the pair does not include the streamer
        """
        if event not in RELAY_EVENTS:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg=f"Not a relay event: {event}",
                status_code=HttpStatusCode.BAD_REQUEST,
            )

        session = self.registry.require_session(stream_id)
        sender_role = session.role_of(sender_id)
        target_role = session.role_of(target_id)

        if sender_role is None or sender_id == target_id:
            logger.warning("Rejected {} from non-participant {} in {}", event, sender_id, stream_id)
            raise AppError(
                errcode=AppErrorCode.E_NOT_PARTICIPANT,
                errmesg=f"Sender {sender_id} is not a participant of {stream_id}",
                status_code=HttpStatusCode.FORBIDDEN,
            )

        if target_role is None:
            if target_id in session.departed or not self._target_connected(target_id):
                logger.debug("Dropped {} from {} to departed {} in {}", event, sender_id, target_id, stream_id)
                return None

            logger.warning(
                "Rejected {} from {} to {} in {}: target is not a participant",
                event,
                sender_id,
                target_id,
                stream_id,
            )
            raise AppError(
                errcode=AppErrorCode.E_NOT_PARTICIPANT,
                errmesg=f"Target {target_id} is not a participant of {stream_id}",
                status_code=HttpStatusCode.FORBIDDEN,
            )

        if session.streamer_id not in (sender_id, target_id):
            raise AppError(
                errcode=AppErrorCode.E_NOT_PARTICIPANT,
                errmesg="Negotiation is only relayed between the streamer and a viewer",
                status_code=HttpStatusCode.FORBIDDEN,
            )

        if not self._target_connected(target_id):
            logger.debug("Dropped {} from {} to disconnected {}", event, sender_id, target_id)
            return None

        return Outbound(
            target=target_id,
            event=event,
            data={
                RELAY_PAYLOAD_FIELDS[event]: payload,
                "fromId": sender_id,
                "streamId": stream_id,
            },
        )
