"""Tests for health check endpoints."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from conftest import START


class TestHealthEndpoint:
    """Tests for /health."""

    @pytest.mark.asyncio
    async def test_healthy_with_db_connected(self, client, timers):
        timers.schedule("rotation:ops", START + timedelta(days=1), AsyncMock())

        with patch(
            "escalator.routers.health.check_database_connection",
            new_callable=AsyncMock,
        ) as mock_db:
            mock_db.return_value = True

            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "database": "connected",
            "scheduler": "running",
            "pending_jobs": 1,
        }

    @pytest.mark.asyncio
    async def test_degraded_when_db_disconnected(self, client):
        with patch(
            "escalator.routers.health.check_database_connection",
            new_callable=AsyncMock,
        ) as mock_db:
            mock_db.return_value = False

            response = await client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["database"] == "disconnected"


class TestProbes:
    """Tests for the liveness and readiness probes."""

    @pytest.mark.asyncio
    async def test_liveness_never_checks_database(self, client):
        with patch(
            "escalator.routers.health.check_database_connection",
            new_callable=AsyncMock,
        ) as mock_db:
            response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}
        mock_db.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ready_when_db_connected(self, client):
        with patch(
            "escalator.routers.health.check_database_connection",
            new_callable=AsyncMock,
            return_value=True,
        ):
            response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    @pytest.mark.asyncio
    async def test_not_ready_when_db_disconnected(self, client):
        with patch(
            "escalator.routers.health.check_database_connection",
            new_callable=AsyncMock,
            return_value=False,
        ):
            response = await client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"


class TestRoot:
    """Tests for the root endpoint."""

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "Escalator API"
