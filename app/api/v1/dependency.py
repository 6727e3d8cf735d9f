from typing import Annotated, Any

import jwt
from fastapi import Depends, Request
from loguru import logger
from pydantic import BaseModel

from app.app_config import get_app_environ_config
from app.domain.live.stream.stream_domain import LiveStreamService
from app.services.integrations.supabase_store import SupabaseStore
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

DEFAULT_ROLE = "vendor"


class User(BaseModel):
    user_id: str
    role: str = DEFAULT_ROLE
    email: str | None = None


def get_store(request: Request) -> SupabaseStore:
    return request.app.state.store


def get_livestream_service(request: Request) -> LiveStreamService:
    return request.app.state.livestream_service


def _bearer_token(request: Request) -> str | None:
    # Do not log request headers here (may include secrets like Authorization).
    auth_header = request.headers.get("authorization") or ""
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Verify a Supabase access token and return its claims, or None if invalid."""
    cfg = get_app_environ_config()
    if not cfg.SUPABASE_JWT_SECRET:
        logger.warning("SUPABASE_JWT_SECRET not configured")
        return None

    try:
        return jwt.decode(
            token,
            cfg.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=cfg.SUPABASE_JWT_AUDIENCE,
        )
    except jwt.PyJWTError as exc:
        logger.debug("invalid access token: {}", exc)
        return None


async def get_current_user(
    request: Request,
    store: SupabaseStore = Depends(get_store),
) -> User:
    token = _bearer_token(request)
    if not token:
        raise AppError(
            errcode=AppErrorCode.E_BAD_TOKEN,
            errmesg="Access token required",
            status_code=HttpStatusCode.UNAUTHORIZED,
        )

    claims = decode_access_token(token)
    user_id = (claims or {}).get("sub")
    if not user_id:
        raise AppError(
            errcode=AppErrorCode.E_BAD_TOKEN,
            errmesg="Invalid token",
            status_code=HttpStatusCode.UNAUTHORIZED,
        )

    email = claims.get("email")
    users_table = get_app_environ_config().USERS_TABLE
    db_user = await store.select(users_table, filters={"id": user_id}, single=True)

    if not db_user:
        # First request from a freshly signed-up account
        try:
            await store.insert(
                users_table,
                {"id": user_id, "phone": email, "role": DEFAULT_ROLE, "is_verified": True},
            )
        except AppError as exc:
            logger.error("Error creating user record for {}: {}", user_id, exc.errmesg)
        return User(user_id=user_id, role=DEFAULT_ROLE, email=email)

    logger.debug("Authenticated user_id: {}", user_id)
    return User(user_id=user_id, role=db_user.get("role") or DEFAULT_ROLE, email=email)


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_role(*roles: str):
    async def _check(user: CurrentUser) -> User:
        if user.role not in roles:
            raise AppError(
                errcode=AppErrorCode.E_FORBIDDEN,
                errmesg="Insufficient permissions",
                status_code=HttpStatusCode.FORBIDDEN,
            )
        return user

    return _check


VendorUser = Annotated[User, Depends(require_role("vendor"))]
