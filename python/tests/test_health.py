"""Tests for GET /health, the unauthenticated liveness check."""


class TestHealthEndpoint:
    def test_ok_without_credentials(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"data": {"status": "ok"}}
        assert response.headers["content-type"] == "application/json"
