"""
Integration tests for the API endpoints.
"""

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import AsyncClient

from tablequeue.config import get_settings
from tablequeue.constants import JobStatus


class TestJobAPI:
    """Integration tests for job API endpoints."""

    @pytest_asyncio.fixture
    async def created_job(self, client: AsyncClient) -> dict:
        """Push a job for testing."""
        response = await client.post(
            "/v1/channels/default/jobs",
            json={"handler_name": "echo", "data": {"test": True}},
        )
        return response.json()

    async def test_push_job_success(self, client: AsyncClient):
        """Test successful job push."""
        response = await client.post(
            "/v1/channels/emails/jobs",
            json={
                "handler_name": "echo",
                "data": {"message": "hello"},
                "priority": 5,
                "ttr": 60,
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert isinstance(data["id"], int)
        assert data["channel"] == "emails"
        assert data["status"] == JobStatus.WAITING.value

    async def test_push_job_assigns_increasing_ids(self, client: AsyncClient):
        first = await client.post("/v1/channels/default/jobs", json={"handler_name": "echo"})
        second = await client.post("/v1/channels/default/jobs", json={"handler_name": "echo"})

        assert second.json()["id"] > first.json()["id"]

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"handler_name": ""},
            {"handler_name": "echo", "priority": -1},
            {"handler_name": "echo", "ttr": 0},
            {"handler_name": "echo", "delay": -5},
        ],
    )
    async def test_push_job_invalid_body(self, client: AsyncClient, body: dict):
        """Test that invalid bodies are rejected."""
        response = await client.post("/v1/channels/default/jobs", json=body)

        assert response.status_code == 422

    async def test_get_job_status(self, client: AsyncClient, created_job: dict):
        """Test reading the status of a pushed job."""
        response = await client.get(f"/v1/jobs/{created_job['id']}/status")

        assert response.status_code == 200
        assert response.json() == {"id": created_job["id"], "status": "waiting"}

    async def test_status_follows_reservation(
        self,
        app: FastAPI,
        client: AsyncClient,
        created_job: dict,
    ):
        """Test that status reflects a lease taken by a consumer."""
        queue = app.state.queue.with_channel("default")
        lease = await queue.reserve()
        assert lease.job_id == created_job["id"]

        response = await client.get(f"/v1/jobs/{created_job['id']}/status")
        assert response.json()["status"] == "reserved"

        await queue.release(lease)
        response = await client.get(f"/v1/jobs/{created_job['id']}/status")
        assert response.json()["status"] == "done"

    async def test_unknown_job_is_done_when_deleting(self, client: AsyncClient):
        """Test that absent rows read as done under delete-on-release."""
        response = await client.get("/v1/jobs/999999/status")

        assert response.status_code == 200
        assert response.json()["status"] == "done"

    async def test_unknown_job_not_found_when_keeping(
        self,
        client: AsyncClient,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """Test that absent rows are unknown when released jobs are kept."""
        monkeypatch.setenv("QUEUE_DELETE_RELEASED", "false")
        get_settings.cache_clear()

        response = await client.get("/v1/jobs/999999/status")

        assert response.status_code == 404
        assert "999999" in response.json()["detail"]

    async def test_channel_stats(self, client: AsyncClient):
        """Test per-state counts of a channel."""
        for _ in range(2):
            await client.post("/v1/channels/reports/jobs", json={"handler_name": "echo"})
        await client.post("/v1/channels/other/jobs", json={"handler_name": "echo"})

        response = await client.get("/v1/channels/reports/stats")

        assert response.status_code == 200
        assert response.json() == {
            "channel": "reports",
            "waiting": 2,
            "reserved": 0,
            "done": 0,
        }


class TestHealthAPI:
    """Integration tests for health endpoints."""

    async def test_health_check(self, client: AsyncClient):
        """Test health check endpoint."""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert "version" in data
        assert "timestamp" in data

    async def test_readiness_check(self, client: AsyncClient):
        """Test readiness check endpoint."""
        response = await client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {"ready": True}

    async def test_liveness_check(self, client: AsyncClient):
        """Test liveness check endpoint."""
        response = await client.get("/live")

        assert response.status_code == 200
        assert response.json() == {"alive": True}

    async def test_metrics_endpoint(self, client: AsyncClient):
        """Test Prometheus metrics endpoint."""
        await client.post("/v1/channels/default/jobs", json={"handler_name": "echo"})

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "queue_jobs_pushed_total" in response.text
