"""Livestream domain service - persisted records plus signaling state."""

import secrets
import string
import time
from typing import Any

from loguru import logger

from app.app_config import get_app_environ_config
from app.domain.live.signaling.registry import SessionRegistry
from app.domain.live.signaling.sync import LivenessSync
from app.schemas import LiveStreamRecord, LiveStreamStatus
from app.schemas.schema_utils import utc_now
from app.services.integrations.supabase_store import SupabaseStore
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .stream_models import ActiveStreamResponse, LiveStreamCreateParams, LiveStreamResponse

_ID_ALPHABET = string.ascii_lowercase + string.digits

VENDOR_PROFILE_COLUMNS = "*, vendor_profiles(business_name, profile_image, city, state)"


def new_stream_key(vendor_id: str, now_ms: int) -> str:
    return f"webrtc_{vendor_id}_{now_ms}"


def new_stream_id(now_ms: int) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"stream_{now_ms}_{suffix}"


class LiveStreamService:
    """Vendor-facing livestream operations.

    Records live in the relational store; whether a stream is currently being
    signaled comes from the in-memory session registry.
    """

    def __init__(
        self,
        store: SupabaseStore,
        registry: SessionRegistry,
        sync: LivenessSync,
    ) -> None:
        cfg = get_app_environ_config()
        self.store = store
        self.registry = registry
        self.sync = sync
        self.table = cfg.LIVESTREAM_TABLE
        self.vendor_table = cfg.VENDOR_PROFILES_TABLE

    # ==================== PUBLIC ====================

    async def list_active_streams(self) -> list[ActiveStreamResponse]:
        """Active signaling sessions merged with their live records."""
        summaries = self.registry.list_active()
        if not summaries:
            return []

        rows = await self.store.select(
            self.table,
            columns=VENDOR_PROFILE_COLUMNS,
            in_filters={"stream_key": [s.stream_key for s in summaries]},
            filters={"status": LiveStreamStatus.LIVE.value},
        )
        by_key = {row.get("stream_key"): row for row in rows or []}

        return [
            ActiveStreamResponse.model_validate(
                {
                    **summary.model_dump(),
                    **by_key.get(summary.stream_key, {}),
                    "stream_id": summary.id,
                    "current_viewers": summary.viewer_count,
                    "is_webrtc": True,
                }
            )
            for summary in summaries
        ]

    def get_active_stream(self, stream_id: str) -> ActiveStreamResponse:
        summary = self.registry.get_summary(stream_id)
        if summary is None:
            raise AppError(
                errcode=AppErrorCode.E_SESSION_NOT_FOUND,
                errmesg=f"No active stream: {stream_id}",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return ActiveStreamResponse(
            **summary.model_dump(),
            stream_id=summary.id,
            current_viewers=summary.viewer_count,
        )

    # ==================== VENDOR ====================

    async def get_vendor_id(self, user_id: str) -> str:
        """Resolve the vendor profile id of a user.

        Raises AppError if the user has no vendor profile.
        """
        profile = await self.store.select(
            self.vendor_table,
            columns="id",
            filters={"user_id": user_id},
            single=True,
        )
        if not profile:
            raise AppError(
                errcode=AppErrorCode.E_VENDOR_NOT_FOUND,
                errmesg="Vendor profile not found. Please complete your vendor registration.",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return str(profile["id"])

    async def create_stream(self, user_id: str, params: LiveStreamCreateParams) -> LiveStreamResponse:
        """Create a scheduled livestream record for the user's vendor profile."""
        vendor_id = await self.get_vendor_id(user_id)

        now_ms = int(time.time() * 1000)
        stream_key = new_stream_key(vendor_id, now_ms)
        stream_id = new_stream_id(now_ms)

        values: dict[str, Any] = {
            "vendor_id": vendor_id,
            "title": params.title,
            "description": params.description,
            "stream_key": stream_key,
            "status": LiveStreamStatus.SCHEDULED.value,
            "rtmp_url": None,
            "hls_url": None,
            "dash_url": None,
            "created_at": utc_now().isoformat(),
        }
        if params.product_id:
            values["product_id"] = params.product_id

        try:
            row = await self.store.insert(self.table, values)
        except AppError as exc:
            # Older databases lack the product_id column
            if "product_id" not in values or "product_id" not in exc.errmesg:
                raise
            logger.warning("product_id column not available, creating stream without product association")
            values.pop("product_id")
            row = await self.store.insert(self.table, values)

        logger.info("Livestream created: stream_key={} stream_id={}", stream_key, stream_id)
        return LiveStreamResponse(**{**values, **row}, stream_id=stream_id)

    async def list_vendor_streams(
        self,
        user_id: str,
        product_id: str | None = None,
    ) -> list[LiveStreamResponse]:
        """The vendor's records, newest first, annotated with signaling state."""
        vendor_id = await self.get_vendor_id(user_id)

        filters: dict[str, Any] = {"vendor_id": vendor_id}
        if product_id:
            filters["product_id"] = product_id

        rows = await self.store.select(
            self.table,
            filters=filters,
            order="created_at",
            desc=True,
        )

        results = []
        for row in rows or []:
            session = self.registry.find_by_stream_key(row.get("stream_key", ""))
            results.append(
                LiveStreamResponse(
                    **row,
                    stream_id=session.stream_id if session else None,
                    current_viewers=session.viewer_count if session else 0,
                    is_active_webrtc=session is not None,
                )
            )
        return results

    async def start_stream(self, user_id: str, stream_key: str) -> LiveStreamRecord:
        """Mark an owned record live."""
        vendor_id = await self.get_vendor_id(user_id)
        await self._get_owned_stream(vendor_id, stream_key=stream_key)

        rows = await self.sync.mark_live(stream_key)
        logger.info("Livestream started via API: {}", stream_key)
        return self._first_record(rows, stream_key)

    async def end_stream(self, user_id: str, stream_key: str) -> LiveStreamRecord:
        """Mark an owned record ended."""
        vendor_id = await self.get_vendor_id(user_id)
        await self._get_owned_stream(vendor_id, stream_key=stream_key)

        rows = await self.sync.mark_ended(stream_key)
        logger.info("Livestream ended via API: {}", stream_key)
        return self._first_record(rows, stream_key)

    async def delete_stream(self, user_id: str, record_id: str) -> str:
        """Delete an owned record that is not live. Returns its title."""
        vendor_id = await self.get_vendor_id(user_id)
        stream = await self._get_owned_stream(vendor_id, record_id=record_id)

        if stream.get("status") == LiveStreamStatus.LIVE.value:
            raise AppError(
                errcode=AppErrorCode.E_STREAM_ACTIVE,
                errmesg="Cannot delete an active stream. Please end the stream first.",
                status_code=HttpStatusCode.BAD_REQUEST,
            )

        await self.store.delete(self.table, filters={"id": record_id, "vendor_id": vendor_id})
        logger.info("Livestream deleted: {}", record_id)
        return str(stream.get("title") or "")

    # ==================== HELPERS ====================

    async def _get_owned_stream(
        self,
        vendor_id: str,
        *,
        stream_key: str | None = None,
        record_id: str | None = None,
    ) -> dict[str, Any]:
        filters: dict[str, Any] = {"vendor_id": vendor_id}
        if stream_key is not None:
            filters["stream_key"] = stream_key
        if record_id is not None:
            filters["id"] = record_id

        stream = await self.store.select(self.table, filters=filters, single=True)
        if not stream:
            raise AppError(
                errcode=AppErrorCode.E_STREAM_NOT_FOUND,
                errmesg="Stream not found or does not belong to you",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return stream

    @staticmethod
    def _first_record(rows: list[dict[str, Any]], stream_key: str) -> LiveStreamRecord:
        if not rows:
            raise AppError(
                errcode=AppErrorCode.E_STREAM_NOT_FOUND,
                errmesg=f"Stream not found: {stream_key}",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return LiveStreamRecord.model_validate(rows[0])
