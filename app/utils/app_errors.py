"""Application error codes and the AppError exception."""

import inspect
from enum import Enum, IntEnum
from uuid import uuid4


class HttpStatusCode(IntEnum):
    OK = 200
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502


class AppErrorCode(str, Enum):
    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_BAD_TOKEN = "E_BAD_TOKEN"
    E_FORBIDDEN = "E_FORBIDDEN"

    # Signaling sessions
    E_SESSION_NOT_FOUND = "E_SESSION_NOT_FOUND"
    E_SESSION_EXISTS = "E_SESSION_EXISTS"
    E_SESSION_FORBIDDEN = "E_SESSION_FORBIDDEN"
    E_NOT_PARTICIPANT = "E_NOT_PARTICIPANT"
    E_UNKNOWN_EVENT = "E_UNKNOWN_EVENT"

    # Persisted livestream records
    E_VENDOR_NOT_FOUND = "E_VENDOR_NOT_FOUND"
    E_STREAM_NOT_FOUND = "E_STREAM_NOT_FOUND"
    E_STREAM_ACTIVE = "E_STREAM_ACTIVE"
    E_PERSISTENCE_ERROR = "E_PERSISTENCE_ERROR"
    E_STORE_NOT_CONFIGURED = "E_STORE_NOT_CONFIGURED"

    def __str__(self) -> str:
        return self.value


class AppError(Exception):
    """Domain error carrying an error code, message and HTTP status.

    The caller location is captured at construction time so handlers can log
    where the error was raised rather than where it was caught.
    """

    def __init__(
        self,
        errcode: AppErrorCode | str = AppErrorCode.E_INTERNAL_ERROR,
        errmesg: str = "We are sorry, an error occurred.",
        status_code: int = HttpStatusCode.INTERNAL_SERVER_ERROR,
    ):
        self.errcode = errcode.value if isinstance(errcode, AppErrorCode) else str(errcode)
        self.errmesg = errmesg
        self.status_code = int(status_code)
        self.erresid = uuid4().hex[:10]

        frame = inspect.currentframe()
        caller = frame.f_back if frame else None
        if caller is not None:
            module = caller.f_globals.get("__name__", caller.f_code.co_filename)
            self.caller_info = f"{module}:{caller.f_code.co_name}:{caller.f_lineno}"
        else:
            self.caller_info = "unknown"

        super().__init__(f"{self.errcode}: {errmesg}")
