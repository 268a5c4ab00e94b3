"""Shared pytest fixtures."""

import os


os.environ.setdefault("ENVIRONMENT", "testing")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from src.main import app  # noqa: E402


@pytest.fixture
def client() -> TestClient:
    """Test client without lifespan (no Cassandra or Redis)."""
    return TestClient(app)
