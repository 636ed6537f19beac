
class TestHealthCheck:
    def test_health_check_returns_200(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert "services" in data

    def test_health_check_reports_database_status(self, client):
        response = client.get("/health")
        data = response.json()
        assert data["services"]["database"]["status"] == "up"
        assert "response_time_ms" in data["services"]["database"]

    def test_health_check_reports_cache_status(self, client):
        response = client.get("/health")
        data = response.json()
        assert data["services"]["cache"]["status"] == "up"

    def test_health_check_reports_record_store(self, client):
        data = client.get("/health").json()
        assert data["services"]["datastore"] == {
            "status": "up",
            "backend": "django",
            "response_time_ms": data["services"]["datastore"]["response_time_ms"],
        }

    def test_unreachable_record_store_is_unhealthy(self, client, settings):
        settings.RECORD_STORE_TABLES = {}

        response = client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["services"]["datastore"]["status"] == "down"
