"""Pydantic schemas for records kept in the relational store."""

from .livestream import LiveStreamRecord
from .livestream_status import LiveStreamStatus

__all__ = [
    "LiveStreamRecord",
    "LiveStreamStatus",
]
