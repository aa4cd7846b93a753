"""Health endpoint and middleware tests."""

import pytest
import structlog
from fastapi import APIRouter
from httpx import ASGITransport, AsyncClient

from stepquest.health.router import check_database, check_push
from stepquest.main import create_app
from stepquest.middleware.logging import service_context


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    """GET /health returns 200 with healthy status."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_version(client: AsyncClient) -> None:
    response = await client.get("/version")
    data = response.json()
    assert data["version"] == "0.1.0"
    assert data["timezone"] == "Asia/Karachi"


@pytest.mark.asyncio
async def test_request_id_propagated(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "req-123"})
    assert response.headers["X-Request-Id"] == "req-123"


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert len(response.headers["X-Request-Id"]) == 36


@pytest.mark.asyncio
async def test_unknown_route_returns_json(client: AsyncClient) -> None:
    response = await client.get("/api/v1/nope")
    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}


@pytest.mark.asyncio
async def test_request_context_bound_for_handlers(ctx) -> None:
    """Handlers see the request id, method and path in the structlog context."""
    app = create_app(pipeline=ctx)
    extra = APIRouter()

    @extra.post("/context")
    async def context() -> dict:
        return dict(structlog.contextvars.get_contextvars())

    app.include_router(extra)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/context", headers={"X-Request-Id": "req-9"})
    assert response.json() == {"request_id": "req-9", "method": "POST", "path": "/context"}


class TestReadinessChecks:
    def test_push_ok_in_log_mode(self, settings, ctx) -> None:
        assert check_push(settings, ctx) == "ok"

    def test_push_without_pipeline(self, settings) -> None:
        assert check_push(settings, None) == "error: pipeline not started"

    def test_fcm_without_project(self, settings, ctx) -> None:
        fcm = settings.model_copy(update={"push_mode": "fcm", "fcm_project_id": ""})
        assert check_push(fcm, ctx) == "error: fcm_project_id not set"

    @pytest.mark.asyncio
    async def test_database_error_reported(self) -> None:
        class BrokenSession:
            async def execute(self, statement):
                raise ConnectionRefusedError("db down")

        assert await check_database(BrokenSession()) == "error: db down"


class TestServiceContext:
    def test_stamps_service_and_component(self, settings) -> None:
        processor = service_context(settings, "worker")
        event = processor(None, "info", {"event": "job_finished"})
        assert event["service"] == "stepquest"
        assert event["component"] == "worker"
        assert event["environment"] == settings.environment
        assert event["tz"] == "Asia/Karachi"

    def test_bound_values_win(self, settings) -> None:
        processor = service_context(settings, "api")
        event = processor(None, "info", {"event": "x", "component": "admin"})
        assert event["component"] == "admin"
