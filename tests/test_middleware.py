"""Middleware tests: request ID, CORS, error handling."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert "x-request-id" in response.headers
    assert len(response.headers["x-request-id"]) == 32  # uuid4 hex


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_oversized_request_id_replaced(client: AsyncClient) -> None:
    """Client ids longer than the limit are not echoed into logs or headers."""
    response = await client.get("/health", headers={"X-Request-Id": "x" * 500})
    assert response.headers["x-request-id"] != "x" * 500


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    """CORS preflight returns access-control-allow-origin for configured origin."""
    response = await client.options(
        "/health",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    """Unknown paths return 404 with JSON body."""
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    data = response.json()
    assert data["detail"] == "Not Found"
    assert data["error"] == "http_error"


@pytest.mark.asyncio
async def test_service_error_carries_code(client: AsyncClient) -> None:
    """Typed service errors keep their status and machine-readable code."""
    response = await client.get("/api/v1/profiles/0xmissing")
    assert response.status_code == 404
    assert response.json()["error"] == "profile_not_found"


@pytest.mark.asyncio
async def test_validation_error_shape(client: AsyncClient) -> None:
    response = await client.post("/api/v1/trades", json={"address": "0xabc", "side": "hold", "usd_amount": 5})
    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "validation_failed"
    assert data["errors"]
