"""Tests for health check and global error handlers."""


class TestHealthCheck:
    def test_healthy(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "healthy"
        assert data["checks"]["db"] == "ok"


class TestGlobalErrorHandler:
    def test_validation_error_format(self, client):
        """Validation errors should return consistent {error, detail} format."""
        r = client.get("/api/events/some-id/comments?limit=999")
        assert r.status_code == 422
        data = r.json()
        assert data["error"] == "Validation error"
        assert "limit" in data["detail"]

    def test_domain_error_format(self, client):
        """Service-layer errors map to their status with {error, detail}."""
        r = client.get("/api/goodies/does-not-exist")
        assert r.status_code == 404
        assert r.json() == {"error": "Not found", "detail": "Goodie not found"}

    def test_unauthorized_format(self, client):
        r = client.post("/api/events/whatever/join")
        assert r.status_code == 401
        assert r.json()["error"] == "Unauthorized"
