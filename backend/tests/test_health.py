"""Tests for the health endpoint."""
import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import settings
from app.main import app


@pytest.mark.asyncio
async def test_health_reports_ok_and_environment():
    """GET /health needs no auth or database and echoes APP_ENV."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "env": settings.APP_ENV}


@pytest.mark.asyncio
async def test_unknown_route_is_404():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/invoices")
    assert response.status_code == 404
