"""
Tests for the health and bindings endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from barista_service.app.api.v1.health import get_health_checker, require_channel_bindings
from barista_service.app.core import events as core_events
from barista_service.app.main import app
from barista_service.app.utils.service_health import BaristaServiceHealthChecker


def checker_with(**statuses):
    checker = BaristaServiceHealthChecker("barista-service", "1.0.0")
    for name, component_status in statuses.items():

        async def check(component=name, value=component_status):
            return {"status": value, "component": component}

        checker.add_check(name, check)
    return checker


@pytest.fixture
def client():
    core_events._runtime = None
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealthEndpoint:
    def test_all_checks_healthy(self, client):
        app.dependency_overrides[get_health_checker] = lambda: checker_with(
            database="healthy", outbox="healthy", kafka="healthy"
        )

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "barista-service"
        assert set(body["checks"]) == {"database", "outbox", "kafka"}
        assert body["barista_id"] is None

    def test_broker_down_is_unhealthy(self, client):
        app.dependency_overrides[get_health_checker] = lambda: checker_with(
            database="healthy", kafka="unhealthy"
        )

        body = client.get("/health").json()

        assert body["status"] == "unhealthy"
        assert body["checks"]["kafka"]["status"] == "unhealthy"

    def test_failing_check_is_reported_as_error(self, client):
        checker = BaristaServiceHealthChecker()

        async def broken():
            raise RuntimeError("no route to host")

        checker.add_check("database", broken)
        app.dependency_overrides[get_health_checker] = lambda: checker

        body = client.get("/health").json()

        assert body["status"] == "unhealthy"
        assert body["checks"]["database"]["status"] == "error"
        assert "no route to host" in body["checks"]["database"]["error"]


class TestBindingsEndpoint:
    def test_uninitialized_bindings_are_unavailable(self, client):
        response = client.get("/bindings")

        assert response.status_code == 503

    def test_bindings_are_described(self, client, bindings):
        app.dependency_overrides[require_channel_bindings] = lambda: bindings

        response = client.get("/bindings")

        assert response.status_code == 200
        assert response.json() == bindings.describe()
