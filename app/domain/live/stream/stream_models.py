"""Livestream domain models."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.live.signaling.signaling_models import SessionSummary
from app.schemas import LiveStreamRecord


class LiveStreamCreateParams(BaseModel):
    """Parameters for creating a livestream record."""

    title: str = Field(..., min_length=1)
    description: str | None = None
    product_id: str | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v


class LiveStreamResponse(LiveStreamRecord):
    """Persisted record annotated with its signaling state."""

    stream_id: str | None = None
    is_webrtc: bool = True
    current_viewers: int = 0
    is_active_webrtc: bool = False


class ActiveStreamResponse(SessionSummary):
    """Active signaling session with its persisted record's columns spread on top.

    When a live record exists its columns (including the joined
    `vendor_profiles`) override the session summary, so `id` is the record id;
    `stream_id` always carries the signaling stream id.
    """

    model_config = ConfigDict(extra="allow")

    stream_id: str
    current_viewers: int
    is_webrtc: bool = True

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: object) -> object:
        return str(v) if isinstance(v, int) else v
