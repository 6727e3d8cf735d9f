"""Livestream record schema (row of the `livestreams` table)."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from .livestream_status import LiveStreamStatus
from .schema_utils import parse_postgres_datetime


class LiveStreamRecord(BaseModel):
    """Durable record tracking a stream's status independent of the registry."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    vendor_id: str
    product_id: str | None = None
    title: str
    description: str | None = None
    stream_key: str
    status: LiveStreamStatus = LiveStreamStatus.SCHEDULED

    # WebRTC streams have no ingest or playback URLs
    rtmp_url: str | None = None
    hls_url: str | None = None
    dash_url: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @field_validator("id", "vendor_id", "product_id", mode="before")
    @classmethod
    def _stringify_ids(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("created_at", "updated_at", "started_at", "ended_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        return parse_postgres_datetime(v)
