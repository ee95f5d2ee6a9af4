"""Application assembly, health endpoints and lifespan."""

import pytest
from fastapi import FastAPI
from httpx import AsyncClient
from pytest_mock import MockerFixture

from keystone.api.main import lifespan


@pytest.mark.integration
class TestHealthAndInfo:
    async def test_health(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": True}

    async def test_health_degraded(
        self, client: AsyncClient, mocker: MockerFixture
    ) -> None:
        mocker.patch(
            "keystone.api.main.check_database_connection",
            return_value=(False, "connection refused"),
        )

        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "degraded", "database": False}

    async def test_info(self, client: AsyncClient) -> None:
        response = await client.get("/info")

        assert response.json() == {
            "app_name": "Keystone API",
            "version": "0.1.0",
            "environment": "development",
            "debug": True,
        }

    async def test_openapi_lists_user_routes(self, client: AsyncClient) -> None:
        paths = (await client.get("/openapi.json")).json()["paths"]

        assert "/api/users" in paths
        assert "/api/users/{user_id}" in paths


@pytest.mark.integration
class TestLifespan:
    async def test_startup_and_shutdown(
        self, app: FastAPI, mocker: MockerFixture
    ) -> None:
        close = mocker.patch("keystone.api.main.close_database")

        async with lifespan(app):
            close.assert_not_called()

        close.assert_awaited_once()

    async def test_startup_fails_without_database(
        self, app: FastAPI, mocker: MockerFixture
    ) -> None:
        mocker.patch(
            "keystone.api.main.check_database_connection",
            return_value=(False, "connection refused"),
        )

        with pytest.raises(RuntimeError, match="connection refused"):
            async with lifespan(app):
                pass
