from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from leave_ledger.db import get_session
from leave_ledger.main import app

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


async def test_health_returns_200(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    assert response.status_code == 200


async def test_health_response_body(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    data = response.json()
    assert data["status"] == "ok"
    assert data["database"] == "ok"
    assert data["version"] == "0.1.0"
    assert data["environment"] == "development"
    assert data["ledger_scopes_in_flight"] == 0


async def test_health_response_schema(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    data = response.json()
    assert set(data.keys()) == {"status", "version", "environment", "database", "ledger_scopes_in_flight"}


async def _health_with_failing_session(error: Exception) -> dict[str, object]:
    mock_session = AsyncMock(spec=AsyncSession)
    mock_session.execute.side_effect = error

    async def _broken_session() -> AsyncIterator[AsyncSession]:
        yield mock_session

    app.dependency_overrides[get_session] = _broken_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")
        assert response.status_code == 200
        return response.json()
    finally:
        app.dependency_overrides.clear()


async def test_health_degraded_when_unreachable() -> None:
    """GET /health reports degraded when the database connection fails."""
    data = await _health_with_failing_session(ConnectionError("DB unreachable"))
    assert data["status"] == "degraded"
    assert data["database"] == "unavailable"


async def test_health_degraded_on_driver_error() -> None:
    data = await _health_with_failing_session(OperationalError("SELECT 1", {}, Exception("server closed")))
    assert data["status"] == "degraded"
