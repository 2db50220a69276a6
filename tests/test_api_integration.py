"""
Integration tests for API endpoints.

Tests the full HTTP request/response cycle against the in-memory gateway.
"""
import pytest
from unittest.mock import AsyncMock

from field_hierarchy.domain.errors import StoreError


# ============================================================
# Health Check Tests
# ============================================================

class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, test_client):
        """Root endpoint should return healthy status."""
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "service" in data
        assert "version" in data

    def test_health_endpoint(self, test_client):
        """Health endpoint should return healthy status."""
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# ============================================================
# Mutation Endpoint Tests
# ============================================================

class TestTaskEndpoints:
    """Tests for the task endpoints."""

    def test_create_task_recomputes_block(self, test_client, seeded_gateway):
        response = test_client.post(
            "/api/v1/tasks",
            json={"Task": "T1", "Area": 2.0, "Trees": 40, "FK_Block": "B1"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["Task"] == "T1"
        assert data["Density"] == 20.0
        assert seeded_gateway.blocks.find(Block="B1")["TaskCount"] == 1

    def test_create_task_duplicate_returns_409(self, test_client):
        payload = {"Task": "T1", "Area": 2.0, "Trees": 40, "FK_Block": "B1"}
        test_client.post("/api/v1/tasks", json=payload)

        response = test_client.post("/api/v1/tasks", json=payload)

        assert response.status_code == 409
        assert response.json()["error"] == "DuplicateKeyError"

    def test_create_task_unknown_block_returns_404(self, test_client):
        response = test_client.post(
            "/api/v1/tasks",
            json={"Task": "T1", "Area": 2.0, "Trees": 40, "FK_Block": "nope"},
        )

        assert response.status_code == 404

    def test_create_task_rejects_derived_fields(self, test_client):
        """Density is written by the engine only."""
        response = test_client.post(
            "/api/v1/tasks",
            json={"Task": "T1", "Area": 2.0, "Trees": 40, "Density": 99.0, "FK_Block": "B1"},
        )

        assert response.status_code == 422

    def test_update_and_delete_task(self, test_client, seeded_gateway):
        task_id = test_client.post(
            "/api/v1/tasks",
            json={"Task": "T1", "Area": 2.0, "Trees": 40, "FK_Block": "B1"},
        ).json()["id"]

        response = test_client.patch(f"/api/v1/tasks/{task_id}", json={"Trees": 80})

        assert response.status_code == 200
        assert response.json()["Density"] == 40.0
        assert seeded_gateway.phases.find(Phase="P1")["Trees"] == 80

        response = test_client.delete(f"/api/v1/tasks/{task_id}")

        assert response.status_code == 200
        assert response.json()["states"][-1] == "idle"
        assert seeded_gateway.blocks.find(Block="B1")["TaskCount"] == 0


class TestBlockAndPhaseEndpoints:
    """Tests for the block and phase endpoints."""

    def test_create_phase_and_block(self, test_client, seeded_gateway):
        response = test_client.post("/api/v1/phases", json={"Phase": "P2"})

        assert response.status_code == 201
        assert response.json()["BlockCount"] == 0

        response = test_client.post(
            "/api/v1/blocks",
            json={"Block": "B2", "FK_Phase": "P2", "Date_Planted": "2024-08-01"},
        )

        assert response.status_code == 201
        assert response.json()["Date_Planted"] == "2024-08-01"
        assert seeded_gateway.phases.find(Phase="P2")["BlockCount"] == 1

    def test_rename_block(self, test_client, seeded_gateway):
        block_id = seeded_gateway.blocks.find(Block="B1")["id"]
        test_client.post("/api/v1/tasks", json={"Task": "T1", "Area": 1.0, "Trees": 5, "FK_Block": "B1"})

        response = test_client.post(f"/api/v1/blocks/{block_id}/rename", json={"new_key": "B1a"})

        assert response.status_code == 200
        assert response.json()["Block"] == "B1a"
        assert seeded_gateway.tasks.find(Task="T1")["FK_Block"] == "B1a"

    def test_delete_phase_cascades(self, test_client, seeded_gateway):
        phase_id = seeded_gateway.phases.find(Phase="P1")["id"]
        test_client.post("/api/v1/tasks", json={"Task": "T1", "Area": 1.0, "Trees": 5, "FK_Block": "B1"})

        response = test_client.delete(f"/api/v1/phases/{phase_id}")

        assert response.status_code == 200
        assert response.json()["removed_blocks"] == ["B1"]
        assert seeded_gateway.blocks.rows == {}
        assert seeded_gateway.tasks.rows == {}

    def test_delete_missing_block_returns_404(self, test_client):
        response = test_client.delete("/api/v1/blocks/999")

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_invalid_id_format(self, test_client):
        """Should return 422 for a non-numeric id."""
        response = test_client.delete("/api/v1/phases/invalid")

        assert response.status_code == 422


class TestHierarchyEndpoints:
    """Tests for the repair endpoint."""

    def test_recompute_all(self, test_client, seeded_gateway):
        seeded_gateway.tasks.seed({"Task": "T1", "Area": 2.0, "Trees": 40, "Density": 0.0, "FK_Block": "B1"})

        response = test_client.post("/api/v1/hierarchy/recompute")

        assert response.status_code == 200
        assert response.json() == {"tasks": 1, "blocks": 1, "phases": 1}
        assert seeded_gateway.phases.find(Phase="P1")["Density"] == 20.0


# ============================================================
# Error Handling Tests
# ============================================================

class TestStoreFailures:
    """Store failures surface as retryable 502 responses."""

    def test_store_error_returns_502(self, test_client, seeded_gateway, monkeypatch):
        monkeypatch.setattr(
            seeded_gateway.tasks, "insert", AsyncMock(side_effect=StoreError("connection reset"))
        )

        response = test_client.post(
            "/api/v1/tasks",
            json={"Task": "T1", "Area": 2.0, "Trees": 40, "FK_Block": "B1"},
        )

        assert response.status_code == 502
        data = response.json()
        assert data["retryable"] is True
        assert "retry" in data["detail"].lower()


# ============================================================
# Response Format Tests
# ============================================================

class TestResponseFormats:
    """Tests for API response formats."""

    def test_openapi_schema_available(self, test_client):
        """OpenAPI schema should list every mutation endpoint."""
        response = test_client.get("/openapi.json")

        assert response.status_code == 200
        paths = response.json()["paths"]
        for path in [
            "/api/v1/phases",
            "/api/v1/phases/{phase_id}",
            "/api/v1/phases/{phase_id}/rename",
            "/api/v1/blocks",
            "/api/v1/blocks/{block_id}",
            "/api/v1/blocks/{block_id}/rename",
            "/api/v1/tasks",
            "/api/v1/tasks/{task_id}",
            "/api/v1/hierarchy/recompute",
        ]:
            assert path in paths

    def test_rate_limit_documented_in_openapi(self, test_client):
        """Rate limit should be documented in OpenAPI."""
        data = test_client.get("/openapi.json").json()

        assert "429" in data["paths"]["/api/v1/tasks"]["post"]["responses"]

    def test_docs_endpoint_available(self, test_client):
        """Swagger docs should be available."""
        response = test_client.get("/docs")

        assert response.status_code == 200


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
