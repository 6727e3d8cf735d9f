"""Shared utilities for schema validation."""

from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_postgres_datetime(v: Any) -> Any:
    """Parse PostgREST timestamp strings or return as-is if already datetime.

    PostgREST renders `timestamptz` columns as ISO 8601 strings, sometimes with a
    trailing `Z` and sometimes with a `+00:00` offset.
    """
    if isinstance(v, datetime):
        return v
    if isinstance(v, str) and v:
        return datetime.fromisoformat(v.replace("Z", "+00:00"))
    # Return as-is and let Pydantic handle validation
    return v
