"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- An empty in-memory gateway
- A gateway seeded with phase P1 holding an empty block B1
- The hierarchy service wired to the seeded gateway
- FastAPI test client
"""
import pytest
from fastapi.testclient import TestClient

from field_hierarchy.main import app
from field_hierarchy.api.dependencies import get_gateway
from field_hierarchy.infrastructure.memory_gateway import InMemoryGateway
from field_hierarchy.services.application.hierarchy_service import HierarchyService


ZERO_PHASE = {"Area": 0.0, "Trees": 0, "Density": 0.0, "BlockCount": 0}
ZERO_BLOCK = {"Area": 0.0, "Trees": 0, "Density": 0.0, "TaskCount": 0}


# ============================================================
# Gateway Fixtures
# ============================================================

@pytest.fixture
def gateway() -> InMemoryGateway:
    """Create an empty in-memory gateway."""
    return InMemoryGateway()


@pytest.fixture
def seeded_gateway(gateway) -> InMemoryGateway:
    """Phase P1 with a single empty block B1, as left by the create paths."""
    gateway.phases.seed({"Phase": "P1", **ZERO_PHASE, "BlockCount": 1})
    gateway.blocks.seed({"Block": "B1", "FK_Phase": "P1", "Date_Planted": None, **ZERO_BLOCK})
    return gateway


# ============================================================
# Service Fixtures
# ============================================================

@pytest.fixture
def service(seeded_gateway) -> HierarchyService:
    """Create the coordinator over the seeded gateway."""
    return HierarchyService(seeded_gateway, allow_natural_key_rename=True)


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client(seeded_gateway):
    """Create a synchronous test client backed by the seeded gateway."""
    app.dependency_overrides[get_gateway] = lambda: seeded_gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
