"""Origin allow-list for cross-origin signaling connections."""

from urllib.parse import urlsplit

from loguru import logger

from app.app_config import AppEnvironConfig


class OriginPolicy:
    """Decides whether a WebSocket handshake from `origin` may proceed.

    Rules, in order:
    1. No Origin header (native apps, CLI tools) is allowed.
    2. Exact match against the configured origin list is allowed.
    3. A host ending with the trusted suffix (e.g. ``.vercel.app``) is allowed.
    4. Outside production every other origin is allowed.
    5. In production anything else is rejected.
    """

    def __init__(
        self,
        allowed_origins: list[str] | None = None,
        trusted_suffix: str | None = None,
        *,
        production: bool = False,
    ) -> None:
        self.allowed_origins = {o.rstrip("/") for o in (allowed_origins or [])}
        if trusted_suffix:
            trusted_suffix = trusted_suffix.strip().lower()
            if not trusted_suffix.startswith("."):
                trusted_suffix = "." + trusted_suffix
        self.trusted_suffix = trusted_suffix or None
        self.production = production

    @classmethod
    def from_config(cls, cfg: AppEnvironConfig) -> "OriginPolicy":
        return cls(
            cfg.WS_CORS_ORIGINS,
            cfg.WS_TRUSTED_ORIGIN_SUFFIX,
            production=cfg.is_production,
        )

    def _matches_suffix(self, origin: str) -> bool:
        if not self.trusted_suffix:
            return False
        host = (urlsplit(origin).hostname or "").lower()
        return bool(host) and host.endswith(self.trusted_suffix)

    def is_allowed(self, origin: str | None) -> bool:
        if not origin:
            return True

        origin = origin.rstrip("/")
        if origin in self.allowed_origins:
            return True
        if self._matches_suffix(origin):
            return True
        if not self.production:
            return True

        logger.warning("Signaling origin blocked: {}", origin)
        return False
