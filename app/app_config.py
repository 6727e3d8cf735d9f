from pydantic import BaseModel

from app.cw.config import config

DEFAULT_WS_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:3002",
    "http://localhost:5000",
]


class AppEnvironConfig(BaseModel):
    # "production" tightens the WebSocket origin policy; anything else is permissive.
    APP_ENV: str = (config.get("APP_ENV") or "development").strip().lower()

    # Public demo switch: when enabled, the record store is not contacted.
    DEMO_MODE: bool = config.get("DEMO_MODE", "false").strip().lower() == "true"  # type: ignore

    API_HOST: str = config.get("API_HOST", "0.0.0.0").strip()  # type: ignore
    API_PORT: int = int((config.get("API_PORT") or "").strip() or 5000)
    API_WORKERS: int = int((config.get("API_WORKERS") or "").strip() or 1)
    API_CORS_ORIGINS: list[str] = config.get_list("API_CORS_ORIGINS", DEFAULT_WS_CORS_ORIGINS)

    # Supabase (PostgREST + GoTrue JWT)
    SUPABASE_URL: str | None = (config.get("SUPABASE_URL") or "").strip() or None
    SUPABASE_SERVICE_ROLE_KEY: str | None = (
        config.get("SUPABASE_SERVICE_ROLE_KEY") or ""
    ).strip() or None
    SUPABASE_JWT_SECRET: str | None = (config.get("SUPABASE_JWT_SECRET") or "").strip() or None
    SUPABASE_JWT_AUDIENCE: str = config.get("SUPABASE_JWT_AUDIENCE", "authenticated").strip()  # type: ignore
    SUPABASE_HTTP_TIMEOUT: float = float((config.get("SUPABASE_HTTP_TIMEOUT") or "").strip() or 10)

    # Tables
    LIVESTREAM_TABLE: str = config.get("LIVESTREAM_TABLE", "livestreams").strip()  # type: ignore
    USERS_TABLE: str = config.get("USERS_TABLE", "users").strip()  # type: ignore
    VENDOR_PROFILES_TABLE: str = config.get("VENDOR_PROFILES_TABLE", "vendor_profiles").strip()  # type: ignore

    # WebSocket signaling origin policy
    WS_CORS_ORIGINS: list[str] = config.get_list("WS_CORS_ORIGINS", DEFAULT_WS_CORS_ORIGINS)
    WS_TRUSTED_ORIGIN_SUFFIX: str | None = (
        config.get("WS_TRUSTED_ORIGIN_SUFFIX") or ""
    ).strip() or None

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
