"""Tests for the /api/v1/livestreams REST endpoints."""

import time

import jwt
import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from httpx import ASGITransport, AsyncClient

from app.api.v1.errors import app_error_handler, app_validation_exception_handler
from app.api.v1.routers.livestream import router
from app.app_config import get_app_environ_config
from app.domain.live.signaling.registry import SessionRegistry
from app.domain.live.signaling.sync import LivenessSync
from app.domain.live.stream.stream_domain import LiveStreamService
from app.utils.app_errors import AppError
from tests.fixtures.store_fixtures import InMemoryStore, seed_vendor


def make_token(sub: str = "user_1", **claims) -> str:
    payload = {
        "sub": sub,
        "aud": "authenticated",
        "email": f"{sub}@example.com",
        "exp": int(time.time()) + 3600,
        **claims,
    }
    return jwt.encode(payload, get_app_environ_config().SUPABASE_JWT_SECRET, algorithm="HS256")


def auth(sub: str = "user_1") -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(sub)}"}


@pytest.fixture
def test_app(memory_store: InMemoryStore, registry: SessionRegistry) -> FastAPI:
    """Create FastAPI test app with the livestream router and error handlers."""
    app = FastAPI()
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, app_validation_exception_handler)  # type: ignore[arg-type]
    app.include_router(router, prefix="/api/v1")

    sync = LivenessSync(memory_store, "livestreams")  # type: ignore[arg-type]
    app.state.store = memory_store
    app.state.registry = registry
    app.state.livestream_service = LiveStreamService(memory_store, registry, sync)  # type: ignore[arg-type]
    return app


@pytest_asyncio.fixture
async def client(test_app: FastAPI):
    transport = ASGITransport(app=test_app)  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def vendor(memory_store: InMemoryStore) -> str:
    return seed_vendor(memory_store)


def stream_row(vendor_id: str, key: str, *, status: str = "scheduled", created_at: str, **extra):
    return {
        "id": f"id_{key}",
        "vendor_id": vendor_id,
        "title": f"Stream {key}",
        "stream_key": key,
        "status": status,
        "created_at": created_at,
        **extra,
    }


class TestActiveStreams:
    async def test_list_empty(self, client: AsyncClient):
        response = await client.get("/api/v1/livestreams")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["results"] == []

    async def test_list_merges_records(
        self,
        client: AsyncClient,
        registry: SessionRegistry,
        memory_store: InMemoryStore,
        vendor: str,
    ):
        memory_store.seed(
            "livestreams",
            stream_row(
                vendor,
                "k1",
                status="live",
                created_at="2026-01-01T10:00:00Z",
                vendor_profiles={"business_name": "Acme", "city": "Lagos"},
            ),
        )
        registry.create_session("s1", "conn_a", "k1", title="Launch")
        registry.add_viewer("s1", "conn_b")

        response = await client.get("/api/v1/livestreams")

        assert response.status_code == 200
        results = response.json()["results"]
        assert len(results) == 1
        assert results[0]["stream_id"] == "s1"
        assert results[0]["current_viewers"] == 1
        assert results[0]["is_webrtc"] is True
        # Record columns are spread on top of the session summary
        assert results[0]["id"] == "id_k1"
        assert results[0]["vendor_id"] == vendor
        assert results[0]["vendor_profiles"] == {"business_name": "Acme", "city": "Lagos"}
        assert results[0]["stream_key"] == "k1"
        assert "conn_a" not in response.text

    async def test_get_active_stream(self, client: AsyncClient, registry: SessionRegistry):
        registry.create_session("s1", "conn_a", "k1", title="Launch")

        response = await client.get("/api/v1/livestreams/s1")

        assert response.status_code == 200
        results = response.json()["results"]
        assert results["id"] == "s1"
        assert results["stream_key"] == "k1"
        assert results["status"] == "live"

    async def test_get_missing_stream(self, client: AsyncClient):
        response = await client.get("/api/v1/livestreams/missing")

        assert response.status_code == 404
        data = response.json()
        assert data["success"] is False
        assert data["errcode"] == "E_SESSION_NOT_FOUND"


class TestAuth:
    async def test_missing_token(self, client: AsyncClient):
        response = await client.post("/api/v1/livestreams/create", json={"title": "Launch"})

        assert response.status_code == 401
        assert response.json()["errcode"] == "E_BAD_TOKEN"

    async def test_bad_signature(self, client: AsyncClient):
        token = jwt.encode(
            {"sub": "user_1", "aud": "authenticated", "exp": int(time.time()) + 60},
            "some-other-secret-that-is-long-enough!!",
            algorithm="HS256",
        )

        response = await client.post(
            "/api/v1/livestreams/create",
            json={"title": "Launch"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 401

    async def test_expired_token(self, client: AsyncClient, vendor: str):
        token = make_token(exp=int(time.time()) - 10)

        response = await client.get(
            "/api/v1/livestreams/vendor/my-streams",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 401

    async def test_first_login_creates_user(self, client: AsyncClient, memory_store: InMemoryStore):
        response = await client.get("/api/v1/livestreams/vendor/my-streams", headers=auth("user_new"))

        # Authenticated as a vendor, but no vendor profile exists yet
        assert response.status_code == 404
        assert response.json()["errcode"] == "E_VENDOR_NOT_FOUND"
        users = memory_store.rows("users")
        assert users == [
            {"id": "user_new", "phone": "user_new@example.com", "role": "vendor", "is_verified": True}
        ]

    async def test_non_vendor_forbidden(self, client: AsyncClient, memory_store: InMemoryStore):
        memory_store.seed("users", {"id": "user_2", "role": "customer"})

        response = await client.post(
            "/api/v1/livestreams/create",
            json={"title": "Launch"},
            headers=auth("user_2"),
        )

        assert response.status_code == 403
        assert response.json()["errcode"] == "E_FORBIDDEN"


class TestCreateStream:
    async def test_create_stream(self, client: AsyncClient, memory_store: InMemoryStore, vendor: str):
        response = await client.post(
            "/api/v1/livestreams/create",
            json={"title": "  Spring launch  ", "description": "New arrivals", "product_id": "prod_9"},
            headers=auth(),
        )

        assert response.status_code == 200
        results = response.json()["results"]
        assert results["title"] == "Spring launch"
        assert results["status"] == "scheduled"
        assert results["stream_key"].startswith(f"webrtc_{vendor}_")
        assert results["stream_id"].startswith("stream_")
        assert results["is_webrtc"] is True
        assert results["rtmp_url"] is None

        rows = memory_store.rows("livestreams")
        assert len(rows) == 1
        assert rows[0]["product_id"] == "prod_9"
        assert rows[0]["vendor_id"] == vendor

    async def test_blank_title_rejected(self, client: AsyncClient, memory_store: InMemoryStore, vendor: str):
        response = await client.post("/api/v1/livestreams/create", json={"title": "   "}, headers=auth())

        assert response.status_code == 422
        assert response.json()["errcode"] == "E_INVALID_PARAMS"
        assert memory_store.rows("livestreams") == []

    async def test_create_without_vendor_profile(self, client: AsyncClient, memory_store: InMemoryStore):
        memory_store.seed("users", {"id": "user_1", "role": "vendor"})

        response = await client.post("/api/v1/livestreams/create", json={"title": "Launch"}, headers=auth())

        assert response.status_code == 404
        assert response.json()["errcode"] == "E_VENDOR_NOT_FOUND"

    async def test_store_failure_is_bad_gateway(
        self, client: AsyncClient, memory_store: InMemoryStore, vendor: str
    ):
        memory_store.fail("insert")

        response = await client.post("/api/v1/livestreams/create", json={"title": "Launch"}, headers=auth())

        assert response.status_code == 502
        assert response.json()["errcode"] == "E_PERSISTENCE_ERROR"


class TestVendorStreams:
    async def test_lists_newest_first_with_signaling_state(
        self,
        client: AsyncClient,
        registry: SessionRegistry,
        memory_store: InMemoryStore,
        vendor: str,
    ):
        memory_store.seed(
            "livestreams",
            stream_row(vendor, "k_old", status="ended", created_at="2026-01-01T10:00:00+00:00"),
            stream_row(vendor, "k_new", status="live", created_at="2026-02-01T10:00:00+00:00"),
            stream_row("vendor_other", "k_foreign", created_at="2026-03-01T10:00:00+00:00"),
        )
        registry.create_session("s_new", "conn_a", "k_new")
        registry.add_viewer("s_new", "conn_b")

        response = await client.get("/api/v1/livestreams/vendor/my-streams", headers=auth())

        assert response.status_code == 200
        results = response.json()["results"]
        assert [r["stream_key"] for r in results] == ["k_new", "k_old"]
        assert results[0]["is_active_webrtc"] is True
        assert results[0]["current_viewers"] == 1
        assert results[0]["stream_id"] == "s_new"
        assert results[1]["is_active_webrtc"] is False
        assert results[1]["current_viewers"] == 0

    async def test_filter_by_product(self, client: AsyncClient, memory_store: InMemoryStore, vendor: str):
        memory_store.seed(
            "livestreams",
            stream_row(vendor, "k1", created_at="2026-01-01T10:00:00Z", product_id="prod_1"),
            stream_row(vendor, "k2", created_at="2026-01-02T10:00:00Z", product_id="prod_2"),
        )

        response = await client.get(
            "/api/v1/livestreams/vendor/my-streams",
            params={"product_id": "prod_2"},
            headers=auth(),
        )

        assert [r["stream_key"] for r in response.json()["results"]] == ["k2"]


class TestStartEndStream:
    async def test_start_then_end(self, client: AsyncClient, memory_store: InMemoryStore, vendor: str):
        memory_store.seed("livestreams", stream_row(vendor, "k1", created_at="2026-01-01T10:00:00Z"))

        started = await client.post("/api/v1/livestreams/k1/start", headers=auth())

        assert started.status_code == 200
        assert started.json()["results"]["status"] == "live"
        assert started.json()["results"]["started_at"] is not None

        ended = await client.post("/api/v1/livestreams/k1/end", headers=auth())

        assert ended.status_code == 200
        assert ended.json()["results"]["status"] == "ended"
        assert memory_store.rows("livestreams")[0]["ended_at"] is not None

    async def test_start_foreign_stream(self, client: AsyncClient, memory_store: InMemoryStore, vendor: str):
        memory_store.seed("livestreams", stream_row("vendor_other", "k1", created_at="2026-01-01T10:00:00Z"))

        response = await client.post("/api/v1/livestreams/k1/start", headers=auth())

        assert response.status_code == 404
        assert response.json()["errcode"] == "E_STREAM_NOT_FOUND"
        assert memory_store.rows("livestreams")[0]["status"] == "scheduled"


class TestDeleteStream:
    async def test_delete_scheduled_stream(self, client: AsyncClient, memory_store: InMemoryStore, vendor: str):
        memory_store.seed("livestreams", stream_row(vendor, "k1", created_at="2026-01-01T10:00:00Z"))

        response = await client.delete("/api/v1/livestreams/id_k1", headers=auth())

        assert response.status_code == 200
        assert response.json()["results"] == {
            "id": "id_k1",
            "message": 'Stream "Stream k1" deleted successfully',
        }
        assert memory_store.rows("livestreams") == []

    async def test_delete_live_stream_rejected(
        self, client: AsyncClient, memory_store: InMemoryStore, vendor: str
    ):
        memory_store.seed(
            "livestreams", stream_row(vendor, "k1", status="live", created_at="2026-01-01T10:00:00Z")
        )

        response = await client.delete("/api/v1/livestreams/id_k1", headers=auth())

        assert response.status_code == 400
        assert response.json()["errcode"] == "E_STREAM_ACTIVE"
        assert len(memory_store.rows("livestreams")) == 1

    async def test_delete_missing_stream(self, client: AsyncClient, vendor: str):
        response = await client.delete("/api/v1/livestreams/nope", headers=auth())

        assert response.status_code == 404
        assert response.json()["errcode"] == "E_STREAM_NOT_FOUND"
