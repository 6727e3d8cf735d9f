from datetime import datetime, timezone

from fastapi import APIRouter, Request

from .utils import ApiSuccess


router = APIRouter()


@router.get('/health', response_model=ApiSuccess)
async def health(request: Request):
    registry = getattr(request.app.state, 'registry', None)
    return ApiSuccess(
        results={
            'status': 'OK',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'active_sessions': len(registry) if registry is not None else 0,
        }
    )
