import logging
import uuid

import pytest

pytestmark = pytest.mark.integration


class TestCorrelationIdMiddleware:
    def test_returns_provided_request_id(self, client):
        custom_id = "my-custom-request-id-123"
        response = client.get("/health", HTTP_X_REQUEST_ID=custom_id)
        assert response["X-Request-ID"] == custom_id

    def test_generates_uuid_when_no_request_id(self, client):
        response = client.get("/health")
        request_id = response["X-Request-ID"]
        parsed = uuid.UUID(request_id, version=4)
        assert str(parsed) == request_id

    def test_correlation_id_in_logs(self, client, caplog):
        custom_id = "log-test-correlation-456"
        with caplog.at_level(logging.INFO):
            client.get("/health", HTTP_X_REQUEST_ID=custom_id)
        found = any(custom_id in record.getMessage() for record in caplog.records)
        assert found, (
            f"correlation_id '{custom_id}' not found in log records: "
            f"{[r.getMessage() for r in caplog.records]}"
        )

    def test_blank_request_id_is_replaced(self, client):
        response = client.get("/health", HTTP_X_REQUEST_ID="   ")
        uuid.UUID(response["X-Request-ID"], version=4)

    def test_overlong_request_id_is_replaced(self, client):
        response = client.get("/health", HTTP_X_REQUEST_ID="x" * 129)
        request_id = response["X-Request-ID"]
        assert request_id != "x" * 129
        uuid.UUID(request_id, version=4)

    def test_request_id_on_api_responses(self, api_client_with_correlation):
        client, cid = api_client_with_correlation
        response = client.get("/api/v1/print-orders/")
        assert response.status_code == 401
        assert response["X-Request-ID"] == cid
