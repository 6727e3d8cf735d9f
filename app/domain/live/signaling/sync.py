"""Keeps the persisted livestream status in step with signaling sessions."""

from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from app.app_config import get_app_environ_config
from app.schemas import LiveStreamStatus
from app.schemas.schema_utils import utc_now
from app.services.integrations.supabase_store import SupabaseStore
from app.utils.app_errors import AppError


class LivenessSync:
    """Writes live/ended transitions of a stream to the record store.

    The real-time path uses `on_start`/`on_end`, which log failures instead of
    raising so that an unavailable store never blocks signaling. The REST path
    uses `mark_live`/`mark_ended`, which propagate errors to the caller.
    """

    def __init__(self, store: SupabaseStore, table: str | None = None) -> None:
        self.store = store
        self.table = table or get_app_environ_config().LIVESTREAM_TABLE

    async def mark_live(self, stream_key: str) -> list[dict[str, Any]]:
        now = utc_now().isoformat()
        return await self.store.update(
            self.table,
            {
                "status": LiveStreamStatus.LIVE.value,
                "started_at": now,
                "updated_at": now,
            },
            filters={"stream_key": stream_key},
        )

    async def mark_ended(self, stream_key: str) -> list[dict[str, Any]]:
        now = utc_now().isoformat()
        return await self.store.update(
            self.table,
            {
                "status": LiveStreamStatus.ENDED.value,
                "ended_at": now,
                "updated_at": now,
            },
            filters={"stream_key": stream_key},
        )

    async def on_start(self, stream_key: str) -> bool:
        """Mark the record live. Returns False if the write failed."""
        return await self._apply(self.mark_live, stream_key, LiveStreamStatus.LIVE)

    async def on_end(self, stream_key: str) -> bool:
        """Mark the record ended. Returns False if the write failed."""
        return await self._apply(self.mark_ended, stream_key, LiveStreamStatus.ENDED)

    async def _apply(
        self,
        write: Callable[[str], Awaitable[list[dict[str, Any]]]],
        stream_key: str,
        status: LiveStreamStatus,
    ) -> bool:
        try:
            rows = await write(stream_key)
        except AppError as exc:
            logger.error(
                "Failed to persist status={} for stream_key={}: {} {} caller={}",
                status,
                stream_key,
                exc.errcode,
                exc.errmesg,
                exc.caller_info,
            )
            return False
        except Exception:
            logger.exception("Unexpected error persisting status={} for stream_key={}", status, stream_key)
            return False

        if not rows:
            logger.warning("No livestream record matched stream_key={} (status={})", stream_key, status)
        else:
            logger.info("Livestream {} marked {}", stream_key, status)
        return True
