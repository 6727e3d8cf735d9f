from fastapi import APIRouter, Depends, Query

from app.api.v1.dependency import VendorUser, get_livestream_service
from app.api.v1.schemas.base import ApiOut
from app.api.v1.schemas.livestream import CreateLiveStreamIn, DeleteLiveStreamOut
from app.domain.live.stream.stream_domain import LiveStreamService
from app.domain.live.stream.stream_models import (
    ActiveStreamResponse,
    LiveStreamCreateParams,
    LiveStreamResponse,
)
from app.schemas import LiveStreamRecord

router = APIRouter(prefix="/livestreams", tags=["Livestreams"])


@router.get("")
async def list_active_streams(
    service: LiveStreamService = Depends(get_livestream_service),
) -> ApiOut[list[ActiveStreamResponse]]:
    """Streams currently being signaled, merged with their live records."""
    results = await service.list_active_streams()
    return ApiOut[list[ActiveStreamResponse]](results=results)


@router.get("/vendor/my-streams")
async def list_my_streams(
    user: VendorUser,
    service: LiveStreamService = Depends(get_livestream_service),
    product_id: str | None = Query(None, description="Only streams featuring this product"),
) -> ApiOut[list[LiveStreamResponse]]:
    """List the vendor's streams, newest first."""
    results = await service.list_vendor_streams(user.user_id, product_id=product_id)
    return ApiOut[list[LiveStreamResponse]](results=results)


@router.get("/{stream_id}")
async def get_active_stream(
    stream_id: str,
    service: LiveStreamService = Depends(get_livestream_service),
) -> ApiOut[ActiveStreamResponse]:
    """Get a single active stream by its signaling stream id.

    Raises:
        404: No active session for stream_id
    """
    return ApiOut[ActiveStreamResponse](results=service.get_active_stream(stream_id))


@router.post("/create")
async def create_stream(
    body: CreateLiveStreamIn,
    user: VendorUser,
    service: LiveStreamService = Depends(get_livestream_service),
) -> ApiOut[LiveStreamResponse]:
    """Create a scheduled WebRTC stream for the vendor."""
    params = LiveStreamCreateParams(**body.model_dump())
    result = await service.create_stream(user.user_id, params)
    return ApiOut[LiveStreamResponse](results=result)


@router.post("/{stream_key}/start")
async def start_stream(
    stream_key: str,
    user: VendorUser,
    service: LiveStreamService = Depends(get_livestream_service),
) -> ApiOut[LiveStreamRecord]:
    result = await service.start_stream(user.user_id, stream_key)
    return ApiOut[LiveStreamRecord](results=result)


@router.post("/{stream_key}/end")
async def end_stream(
    stream_key: str,
    user: VendorUser,
    service: LiveStreamService = Depends(get_livestream_service),
) -> ApiOut[LiveStreamRecord]:
    result = await service.end_stream(user.user_id, stream_key)
    return ApiOut[LiveStreamRecord](results=result)


@router.delete("/{record_id}")
async def delete_stream(
    record_id: str,
    user: VendorUser,
    service: LiveStreamService = Depends(get_livestream_service),
) -> ApiOut[DeleteLiveStreamOut]:
    """Delete a stream record that is not currently live.

    Raises:
        404: Stream not found or not owned by the vendor
        400: Stream is live
    """
    title = await service.delete_stream(user.user_id, record_id)
    return ApiOut[DeleteLiveStreamOut](
        results=DeleteLiveStreamOut(id=record_id, message=f'Stream "{title}" deleted successfully')
    )
