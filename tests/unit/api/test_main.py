"""Tests for the application factory."""

from __future__ import annotations

from fastapi.testclient import TestClient


class TestCreateApp:
    """Tests for create_app."""

    def test_health(self):
        from api.main import create_app

        client = TestClient(create_app())
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "huddle-api"}

    def test_grouping_routes_registered(self):
        from api.main import create_app

        paths = {route.path for route in create_app().routes}
        assert "/api/grouping/{camp_id}/auto" in paths
        assert "/api/grouping/{camp_id}/violations/{violation_id}/resolve" in paths
