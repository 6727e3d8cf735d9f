"""Persisted livestream status values."""

from enum import Enum


class LiveStreamStatus(str, Enum):
    """Status column of a persisted livestream record.

    SCHEDULED -> LIVE -> ENDED

    - SCHEDULED: record created by a vendor, no signaling session yet.
    - LIVE: a signaling session was started for the record's stream key.
    - ENDED: the session was ended explicitly or the streamer disconnected.
    """

    SCHEDULED = "scheduled"
    LIVE = "live"
    ENDED = "ended"

    def __str__(self) -> str:
        return self.value


__all__ = ["LiveStreamStatus"]
