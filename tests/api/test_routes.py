"""
Tests for the review HTTP API.

Apps are built with pre-made fake backends so startup never reads the
environment.
"""

import pytest
from conftest import MULTI_FILE_DIFF, make_backend, review_json
from fastapi.testclient import TestClient

from review_forge.api.models import MAX_DIFF_SIZE, LargeReviewBody
from review_forge.api.server import create_app


@pytest.fixture
def client() -> TestClient:
    backend = make_backend(review_json(summary="Looks reasonable"))
    return TestClient(create_app(backends=[backend]))


# =============================================================================
# REQUEST MODEL
# =============================================================================

class TestLargeReviewBody:
    """Tests for request body parsing."""

    def test_camel_case_keys(self):
        """camelCase keys populate the request."""
        body = LargeReviewBody.model_validate(
            {"diff": "d", "commitHash": "abc", "commitMessage": "msg"}
        )
        request = body.to_request()

        assert request.commit_hash == "abc"
        assert request.commit_message == "msg"

    def test_snake_case_keys(self):
        """snake_case keys are accepted too."""
        body = LargeReviewBody.model_validate({"diff": "d", "commit_hash": "abc"})
        assert body.commit_hash == "abc"


# =============================================================================
# POST /review/large
# =============================================================================

class TestReviewLarge:
    """Tests for the large review endpoint."""

    def test_success(self, client: TestClient):
        """A valid diff returns the review, metadata and statistics."""
        response = client.post(
            "/review/large",
            json={"diff": MULTI_FILE_DIFF, "author": "alice", "commitHash": "abc123"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["review"].startswith("## AI Code Review Summary")
        assert "- Commit: abc123" in data["review"]
        assert data["metadata"]["files"] == 3
        assert data["metadata"]["providers"] == ["fake"]
        assert "statistics" in data

    def test_files_filter(self, client: TestClient):
        """Only listed files are reviewed."""
        response = client.post(
            "/review/large", json={"diff": MULTI_FILE_DIFF, "files": ["src/api/users.py"]}
        )

        assert response.status_code == 200
        assert response.json()["metadata"]["files"] == 1

    def test_missing_diff(self, client: TestClient):
        """A body without a diff is rejected with 400."""
        response = client.post("/review/large", json={"author": "alice"})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing or invalid diff"}

    def test_empty_diff(self, client: TestClient):
        """An empty diff is rejected with 400."""
        assert client.post("/review/large", json={"diff": ""}).status_code == 400

    def test_diff_too_large(self, client: TestClient):
        """Diffs above the size limit are rejected with 413."""
        response = client.post("/review/large", json={"diff": "x" * (MAX_DIFF_SIZE + 1)})

        assert response.status_code == 413
        data = response.json()
        assert data["maxSize"] == MAX_DIFF_SIZE
        assert data["size"] == MAX_DIFF_SIZE + 1

    def test_pipeline_failure(self):
        """Pipeline failure maps to 500 with error details."""
        client = TestClient(create_app(backends=[]))

        response = client.post("/review/large", json={"diff": MULTI_FILE_DIFF})

        assert response.status_code == 500
        data = response.json()
        assert set(data) == {"error", "message", "timestamp"}
        assert data["error"] == "Large review failed"
        assert "No generation backend is available" in data["message"]


# =============================================================================
# GET /health
# =============================================================================

class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client: TestClient):
        """Health lists the configured providers."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "review-forge"
        assert data["providers"] == ["fake"]
        assert isinstance(data["timestamp"], int)
