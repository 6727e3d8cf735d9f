"""Signaling wire models.

Frames on the signaling socket are JSON objects of the form
``{"event": <name>, "data": {...}}``. Inbound payloads use camelCase keys
(``streamId``, ``targetId``), matching the browser clients.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SessionRole(str, Enum):
    STREAMER = "streamer"
    VIEWER = "viewer"

    def __str__(self) -> str:
        return self.value


class SignalingEvent(str, Enum):
    """Event names used on the signaling socket."""

    # client -> server
    START_SESSION = "start-session"
    JOIN_SESSION = "join-session"
    LEAVE_SESSION = "leave-session"
    END_SESSION = "end-session"
    WEBRTC_OFFER = "webrtc-offer"
    WEBRTC_ANSWER = "webrtc-answer"
    WEBRTC_ICE_CANDIDATE = "webrtc-ice-candidate"

    # server -> client
    CONNECTED = "connected"
    SESSION_STARTED = "session-started"
    SESSION_JOINED = "session-joined"
    SESSION_ENDED = "session-ended"
    VIEWER_JOINED = "viewer-joined"
    VIEWER_LEFT = "viewer-left"

    # server -> client failures
    SESSION_NOT_FOUND = "session-not-found"
    SESSION_START_ERROR = "session-start-error"
    SESSION_ERROR = "session-error"

    def __str__(self) -> str:
        return self.value


RELAY_EVENTS = frozenset(
    {
        SignalingEvent.WEBRTC_OFFER,
        SignalingEvent.WEBRTC_ANSWER,
        SignalingEvent.WEBRTC_ICE_CANDIDATE,
    }
)

# Field name carrying the opaque negotiation payload for each relay event
RELAY_PAYLOAD_FIELDS: dict[SignalingEvent, str] = {
    SignalingEvent.WEBRTC_OFFER: "offer",
    SignalingEvent.WEBRTC_ANSWER: "answer",
    SignalingEvent.WEBRTC_ICE_CANDIDATE: "candidate",
}


class _InboundModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )


class StartSessionIn(_InboundModel):
    stream_id: str = Field(..., min_length=1)
    stream_key: str = Field(..., min_length=1)
    title: str | None = None
    description: str | None = None


class JoinSessionIn(_InboundModel):
    stream_id: str = Field(..., min_length=1)


class LeaveSessionIn(_InboundModel):
    stream_id: str = Field(..., min_length=1)


class EndSessionIn(_InboundModel):
    stream_id: str = Field(..., min_length=1)
    stream_key: str | None = None


class RelayIn(BaseModel):
    """Relay request. The payload is opaque and never inspected."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    stream_id: str = Field(..., min_length=1, alias="streamId")
    target_id: str = Field(..., min_length=1, alias="targetId")
    payload: Any = Field(
        default=None,
        validation_alias=AliasChoices("payload", "offer", "answer", "candidate"),
    )


class Outbound(BaseModel):
    """A message addressed to exactly one connection."""

    target: str
    event: SignalingEvent
    data: dict[str, Any] = Field(default_factory=dict)

    def frame(self) -> dict[str, Any]:
        return {"event": self.event.value, "data": self.data}


class SessionSummary(BaseModel):
    """Read-only view of an active session; carries no connection ids."""

    id: str
    stream_key: str
    title: str | None = None
    description: str | None = None
    viewer_count: int
    created_at: datetime
    status: str = "live"
