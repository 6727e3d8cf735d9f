import time
import traceback
import uuid
from contextlib import asynccontextmanager
from os import environ

import logfire
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from granian import Granian
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.v1.errors import app_error_handler, app_validation_exception_handler
from app.api.v1.routers import livestream as livestream_routes
from app.api.ws.gateway import build_signaling_gateway
from app.api.ws.routers import livestream as livestream_socket
from app.app_config import get_app_environ_config
from app.cw.config import config
from app.domain.live.stream.stream_domain import LiveStreamService
from app.shared.api import health
from app.shared.api.utils import api_failure, init_logger, log_routes
from app.services.integrations.supabase_store import supabase_store
from app.utils.app_errors import AppError, AppErrorCode


class HTTPLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore
        start_time = time.time()
        request_id = str(uuid.uuid4())[:8]

        logger.info(f"[{request_id}] {request.method} {request.url.path}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000

            logger.info(
                f"[{request_id}] {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Duration: {process_time:.2f}ms"
            )

            return response

        except Exception as exc:
            process_time = (time.time() - start_time) * 1000

            logger.error(
                f"[{request_id}] Unhandled exception in {request.method} {request.url.path} - "
                f"Duration: {process_time:.2f}ms - "
                f"Error: {type(exc).__name__}: {exc}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            failure = api_failure(
                errcode=AppErrorCode.E_INTERNAL_ERROR.value,
                errmesg=f"Internal server error (request_id: {request_id})",
            )
            return ORJSONResponse(
                status_code=500,
                content=failure.model_dump(),
            )


@asynccontextmanager
async def lifespan(server: FastAPI):
    init_logger()

    logger.info("Application startup...")

    cfg = get_app_environ_config()
    logger.info("Environment: {}", cfg.APP_ENV)

    gateway = build_signaling_gateway(supabase_store)
    server.state.store = supabase_store
    server.state.signaling_gateway = gateway
    server.state.registry = gateway.registry
    server.state.livestream_service = LiveStreamService(
        store=supabase_store,
        registry=gateway.registry,
        sync=gateway.dispatcher.sync,
    )

    log_routes(server)

    if str(config.get("LOGFIRE_ENABLE", "false")).lower() == "true":
        logger.info("Logfire initializing")

        logfire.configure(
            token=config.get("LOGFIRE_TOKEN"),
            service_name="vendor-livestream",
            service_version=environ.get("BUILD_COMMIT") or "dev",
        )

        logger.info("Logfire instrument fastapi")
        logfire.instrument_fastapi(server, capture_headers=True)

        logger.info("Logfire instrument httpx")
        logfire.instrument_httpx()

    yield

    logger.info("Application shutdown... ({} live sessions dropped)", len(gateway.registry))


app = FastAPI(
    version="1.0",
    title="Vendor Livestream API",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

DEBUG = str(config.get("DEBUG", "false")).lower() == "true"

app.add_middleware(HTTPLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,  # type: ignore
    allow_origins=get_app_environ_config().API_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

app.add_exception_handler(RequestValidationError, app_validation_exception_handler)  # type: ignore
app.add_exception_handler(AppError, app_error_handler)  # type: ignore

app.include_router(health.router, prefix="/api/v1")
app.include_router(livestream_routes.router, prefix="/api/v1")
app.include_router(livestream_socket.router)


def build_granian_kwargs():
    cfg = get_app_environ_config()
    kwargs = {
        "interface": "asgi",
        "address": cfg.API_HOST,
        "port": cfg.API_PORT,
        # The session registry is process-local; more workers would split it
        "workers": 1,
        "reload": DEBUG,
    }
    if cfg.API_WORKERS != 1:
        logger.warning("API_WORKERS={} ignored: signaling state is single-process", cfg.API_WORKERS)

    return kwargs


if __name__ == "__main__":
    granian_kwargs = build_granian_kwargs()
    Granian("app.main:app", **granian_kwargs).serve()
