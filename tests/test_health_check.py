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
        assert "response_time_ms" in data["services"]["cache"]

    def test_health_check_reports_vendor_configuration(self, client):
        response = client.get("/health")
        vendor = response.json()["services"]["print_vendor"]
        assert vendor == {
            "status": "configured",
            "credentials": True,
            "webhook_secret": True,
        }

    def test_missing_webhook_secret_degrades_vendor_only(self, client, settings):
        settings.MIXAM_WEBHOOK_SECRET = ""
        response = client.get("/health")
        assert response.status_code == 200
        vendor = response.json()["services"]["print_vendor"]
        assert vendor["status"] == "degraded"
        assert vendor["webhook_secret"] is False
