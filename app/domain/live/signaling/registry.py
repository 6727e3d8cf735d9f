"""In-memory registry of live signaling sessions.

The registry is the only owner of session membership. It is a soft cache of
which connections are attached to which stream; the persisted livestream record
remains the durable source of truth for status and metadata. All state is lost
on process restart.

Mutations are synchronous and run to completion inside a single event-loop
step, so no locking is required.
"""

from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from app.schemas.schema_utils import utc_now
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .signaling_models import SessionRole, SessionSummary


@dataclass
class Session:
    stream_id: str
    streamer_id: str
    stream_key: str
    title: str | None = None
    description: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    viewers: set[str] = field(default_factory=set)
    # Viewers that left; relays still addressed to them are dropped quietly
    departed: set[str] = field(default_factory=set)

    @property
    def viewer_count(self) -> int:
        return len(self.viewers)

    def members(self) -> list[str]:
        """Streamer first, then viewers."""
        return [self.streamer_id, *self.viewers]

    def role_of(self, connection_id: str) -> SessionRole | None:
        if connection_id == self.streamer_id:
            return SessionRole.STREAMER
        if connection_id in self.viewers:
            return SessionRole.VIEWER
        return None

    def summary(self) -> SessionSummary:
        return SessionSummary(
            id=self.stream_id,
            stream_key=self.stream_key,
            title=self.title,
            description=self.description,
            viewer_count=self.viewer_count,
            created_at=self.created_at,
        )


class SessionRegistry:
    """Maps stream ids to live sessions."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, stream_id: object) -> bool:
        return stream_id in self._sessions

    def create_session(
        self,
        stream_id: str,
        streamer_id: str,
        stream_key: str,
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> Session:
        """Create a session owned by `streamer_id`.

        Raises:
            AppError: E_SESSION_EXISTS if `stream_id` is already live
        """
        if stream_id in self._sessions:
            raise AppError(
                errcode=AppErrorCode.E_SESSION_EXISTS,
                errmesg=f"Session already exists: {stream_id}",
                status_code=HttpStatusCode.CONFLICT,
            )

        session = Session(
            stream_id=stream_id,
            streamer_id=streamer_id,
            stream_key=stream_key,
            title=title,
            description=description,
        )
        self._sessions[stream_id] = session
        logger.info("Session {} created by streamer {}", stream_id, streamer_id)
        return session

    def get_session(self, stream_id: str) -> Session | None:
        return self._sessions.get(stream_id)

    def require_session(self, stream_id: str) -> Session:
        session = self._sessions.get(stream_id)
        if session is None:
            raise AppError(
                errcode=AppErrorCode.E_SESSION_NOT_FOUND,
                errmesg=f"Session not found: {stream_id}",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return session

    def add_viewer(self, stream_id: str, connection_id: str) -> Session:
        """Attach a viewer; re-joining is a no-op.

        Raises:
            AppError: E_SESSION_NOT_FOUND if there is no such session,
                E_INVALID_REQUEST if the connection is the session's streamer
        """
        session = self.require_session(stream_id)
        if connection_id == session.streamer_id:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg=f"Streamer cannot join its own session as a viewer: {stream_id}",
                status_code=HttpStatusCode.BAD_REQUEST,
            )

        session.viewers.add(connection_id)
        session.departed.discard(connection_id)
        logger.debug(
            "Viewer {} joined {} (viewer_count={})",
            connection_id,
            stream_id,
            session.viewer_count,
        )
        return session

    def remove_viewer(self, stream_id: str, connection_id: str) -> Session | None:
        """Detach a viewer. Unknown sessions and non-members are ignored."""
        session = self._sessions.get(stream_id)
        if session is None:
            return None

        if connection_id in session.viewers:
            session.viewers.discard(connection_id)
            session.departed.add(connection_id)
        return session

    def remove_session(self, stream_id: str) -> Session | None:
        """Evict a session and return it, or None if it was already gone."""
        session = self._sessions.pop(stream_id, None)
        if session is not None:
            logger.info("Session {} removed", stream_id)
        return session

    def find_sessions_by_connection(self, connection_id: str) -> list[tuple[str, SessionRole]]:
        """Every session the connection participates in, with its role there."""
        found: list[tuple[str, SessionRole]] = []
        for stream_id, session in self._sessions.items():
            role = session.role_of(connection_id)
            if role is not None:
                found.append((stream_id, role))
        return found

    def members(self, stream_id: str) -> list[str]:
        """Connection ids attached to the session, streamer first; empty if absent."""
        session = self._sessions.get(stream_id)
        return session.members() if session else []

    def find_by_stream_key(self, stream_key: str) -> Session | None:
        for session in self._sessions.values():
            if session.stream_key == stream_key:
                return session
        return None

    def get_summary(self, stream_id: str) -> SessionSummary | None:
        session = self._sessions.get(stream_id)
        return session.summary() if session else None

    def list_active(self) -> list[SessionSummary]:
        """Snapshot of active sessions in creation order."""
        return [session.summary() for session in self._sessions.values()]
