"""
Tests for the HTTP API - page, session endpoints, health and admin.
"""

import pytest
from fastapi.testclient import TestClient

from neural_calculator.api.app import create_app
from neural_calculator.config import config
from neural_calculator.core.inference_runner import InferenceRunner
from neural_calculator.core.session import SessionManager

from .conftest import BrokenModel, FixedResolver


@pytest.fixture
def client(empty_origin: str):
    """Client for an app whose artifacts are absent."""
    with TestClient(create_app(model_origin=empty_origin)) as test_client:
        yield test_client


@pytest.fixture
def loaded_client(artifact_origin: str):
    """Client for an app serving real artifacts."""
    with TestClient(create_app(model_origin=artifact_origin)) as test_client:
        yield test_client


class TestPage:
    """Test the calculator page."""

    def test_serves_page_and_sets_cookie(self, client: TestClient) -> None:
        response = client.get("/")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "Neural Calculator" in response.text
        assert config.SESSION_COOKIE in response.cookies

    def test_session_survives_between_requests(self, client: TestClient) -> None:
        client.get("/")
        first = client.get("/api/session").json()["session_id"]
        second = client.get("/api/session").json()["session_id"]

        assert first == second


class TestOperation:
    """Test operation selection."""

    def test_initial_state_is_idle(self, client: TestClient) -> None:
        state = client.get("/api/session").json()

        assert state["state"] == "idle"
        assert state["can_compute"] is False
        assert state["operation"] is None

    def test_missing_artifact_gives_synthetic_model(self, client: TestClient) -> None:
        response = client.post("/api/session/operation", json={"operation": "add"})

        assert response.status_code == 200
        state = response.json()
        assert state["state"] == "ready"
        assert state["provenance"] == "Synthetic"
        assert state["badge"] == "Synthetic"
        assert state["can_compute"] is True

    def test_existing_artifact_is_loaded(self, loaded_client: TestClient) -> None:
        state = loaded_client.post("/api/session/operation", json={"operation": "subtract"}).json()

        assert state["provenance"] == "Loaded"

    def test_unknown_operation_rejected(self, client: TestClient) -> None:
        response = client.post("/api/session/operation", json={"operation": "multiply"})

        assert response.status_code == 422


class TestCalculate:
    """Test the calculate endpoint."""

    def test_add_scenario(self, client: TestClient) -> None:
        client.post("/api/session/operation", json={"operation": "add"})

        response = client.post("/api/session/calculate", json={"a": "2", "b": "3"})

        assert response.status_code == 200
        assert response.json() == {
            "result": "5.00",
            "value": 5.0,
            "operation": "add",
            "provenance": "Synthetic",
        }

    def test_subtract_scenario(self, client: TestClient) -> None:
        client.post("/api/session/operation", json={"operation": "subtract"})

        body = client.post("/api/session/calculate", json={"a": "10", "b": "4"}).json()

        assert body["result"] == "6.00"
        assert body["provenance"] == "Synthetic"

    def test_numeric_json_operands(self, client: TestClient) -> None:
        client.post("/api/session/operation", json={"operation": "add"})

        body = client.post("/api/session/calculate", json={"a": 1.25, "b": 2}).json()

        assert body["result"] == "3.25"

    def test_loaded_model_is_used(self, loaded_client: TestClient) -> None:
        loaded_client.post("/api/session/operation", json={"operation": "add"})

        body = loaded_client.post("/api/session/calculate", json={"a": "2", "b": "3"}).json()

        # artifact computes 2a + 3b + 1
        assert body["result"] == "14.00"
        assert body["provenance"] == "Loaded"

    def test_empty_operand_computes_nothing(self, client: TestClient) -> None:
        client.post("/api/session/operation", json={"operation": "add"})

        response = client.post("/api/session/calculate", json={"a": "", "b": "5"})

        assert response.status_code == 422
        assert client.get("/api/session").json()["result"] is None

    def test_non_numeric_operand(self, client: TestClient) -> None:
        client.post("/api/session/operation", json={"operation": "add"})

        response = client.post("/api/session/calculate", json={"a": "abc", "b": "5"})

        assert response.status_code == 422
        assert "not a valid number" in response.json()["detail"]

    def test_before_model_is_ready(self, client: TestClient) -> None:
        response = client.post("/api/session/calculate", json={"a": "2", "b": "3"})

        assert response.status_code == 409

    def test_repeated_calculation_is_stable(self, client: TestClient) -> None:
        client.post("/api/session/operation", json={"operation": "subtract"})

        first = client.post("/api/session/calculate", json={"a": "3.5", "b": "1.25"}).json()
        second = client.post("/api/session/calculate", json={"a": "3.5", "b": "1.25"}).json()

        assert first == second
        assert first["result"] == "2.25"

    def test_switching_operation_clears_result(self, client: TestClient) -> None:
        client.post("/api/session/operation", json={"operation": "add"})
        client.post("/api/session/calculate", json={"a": "2", "b": "3"})
        assert client.get("/api/session").json()["result"] == "5.00"

        state = client.post("/api/session/operation", json={"operation": "subtract"}).json()

        assert state["result"] is None

    def test_inference_error_reported_in_place(self) -> None:
        manager = SessionManager(resolver=FixedResolver(BrokenModel()), runner=InferenceRunner())

        with TestClient(create_app(session_manager=manager)) as client:
            client.post("/api/session/operation", json={"operation": "add"})
            response = client.post("/api/session/calculate", json={"a": "1", "b": "2"})
            state = client.get("/api/session").json()

        assert response.status_code == 500
        assert state["result"] == "Error"
        assert state["can_compute"] is True


class TestHealthAndAdmin:
    """Test service endpoints."""

    def test_health(self, client: TestClient) -> None:
        client.get("/")

        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["device"] == config.DEVICE
        assert body["active_sessions"] == 1

    def test_stats(self, client: TestClient, empty_origin: str) -> None:
        client.post("/api/session/operation", json={"operation": "add"})

        body = client.get("/admin/stats").json()

        assert body["session_count"] == 1
        assert body["by_state"] == {"ready": 1}
        assert body["by_provenance"] == {"Synthetic": 1}
        assert body["model_origin"] == empty_origin

    def test_remove_session(self, client: TestClient) -> None:
        session_id = client.get("/api/session").json()["session_id"]

        assert client.delete(f"/admin/sessions/{session_id}").status_code == 200
        assert client.delete(f"/admin/sessions/{session_id}").status_code == 404
